import pygame
from dataclasses import dataclass


@dataclass
class GuiStyle:
    margin: int = 0
    status_height: int = 22
    background_color: tuple = (191, 191, 191)
    it_color: tuple = (255, 0, 0)
    agent_color: tuple = (255, 255, 0)
    text_color: tuple = (20, 20, 20)
    body_scale: int = 15  # body diameter in grid cells


class PyGameRenderer:
    def __init__(self, grid_side: int, window_side: int = 720, fps: int = 120):
        self.grid_side = grid_side
        self.window_side = window_side
        self.fps = fps
        self.style = GuiStyle()
        self.scale = window_side / grid_side
        self.body_size = max(2, int(self.style.body_scale * window_side / grid_side))

        pygame.init()
        self.screen = pygame.display.set_mode(
            (window_side + 2 * self.style.margin, window_side + 2 * self.style.margin + self.style.status_height)
        )
        pygame.display.set_caption("Tag!")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont(None, 20)

    def close(self) -> None:
        pygame.quit()

    def update(self, objects, step: int, tagged: int = 0) -> bool:
        """Draw one frame of (position, is_it) pairs. Returns False once the window is closed."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                return False

        self.screen.fill(self.style.background_color)
        self._draw_agents(objects)
        self._draw_text(objects, step, tagged)

        pygame.display.flip()
        self.clock.tick(self.fps)
        return True

    def _draw_agents(self, objects) -> None:
        radius = max(1, self.body_size // 2)
        # non-it agents first so the it agents stay visible on top
        for position, is_it in sorted(objects, key=lambda obj: obj[1]):
            x_pix = self.style.margin + int(position[0] * self.scale)
            y_pix = self.style.margin + int(position[1] * self.scale)
            color = self.style.it_color if is_it else self.style.agent_color
            pygame.draw.circle(self.screen, color, (x_pix, y_pix), radius)

    def _draw_text(self, objects, step: int, tagged: int) -> None:
        n_it = sum(1 for _, is_it in objects if is_it)
        text = f"t={step} agents={len(objects)} it={n_it} tagged={tagged}"
        surface = self.font.render(text, True, self.style.text_color)
        self.screen.blit(surface, (self.style.margin + 4, self.style.margin + self.window_side + 2))
