import pygame
from typing import List, Optional, Tuple

from data.models import BlockProgress, LetterStimulus, Stimulus


class Renderer:
    """
    Renderer отвечает ТОЛЬКО за рисование.
    RT, правильность и фазы считает state machine, сюда приходят готовые данные.
    """

    def __init__(self, screen: pygame.Surface):
        self.screen = screen
        self.w, self.h = screen.get_size()

        # pygame.font должен быть инициализирован через pygame.init()
        self.font_huge = pygame.font.SysFont(None, 120)
        self.font_big = pygame.font.SysFont(None, 72)
        self.font_mid = pygame.font.SysFont(None, 42)
        self.font_small = pygame.font.SysFont(None, 28)

        self.center = (self.w // 2, self.h // 2)

        self.bg_color = (15, 15, 20)
        self.ui_color = (230, 230, 230)
        self.ok_color = (60, 200, 120)
        self.bad_color = (220, 60, 60)

        # названия цветов стимула -> RGB
        self.color_map = {
            "red": (220, 60, 60),
            "green": (60, 200, 120),
            "blue": (70, 120, 240),
            "yellow": (240, 210, 60),
            "purple": (160, 90, 220),
            "orange": (245, 150, 50),
        }

    def clear(self) -> None:
        self.screen.fill(self.bg_color)

    def present(self) -> None:
        pygame.display.flip()

    def _blit_center(self, surf: pygame.Surface, y: float) -> None:
        rect = surf.get_rect(center=(self.center[0], int(y)))
        self.screen.blit(surf, rect)

    def draw_fixation(self) -> None:
        cx, cy = self.center
        size = min(self.w, self.h) // 20
        pygame.draw.line(self.screen, self.ui_color, (cx - size, cy), (cx + size, cy), 4)
        pygame.draw.line(self.screen, self.ui_color, (cx, cy - size), (cx, cy + size), 4)

    def draw_stimulus(self, stimulus) -> None:
        """
        Stimulus: слово, написанное цветом чернил.
        LetterStimulus: одна белая буква (n-back, go/no-go).
        """
        if isinstance(stimulus, Stimulus):
            color = self.color_map.get(stimulus.color, (200, 200, 200))
            surf = self.font_huge.render(stimulus.word, True, color)
        elif isinstance(stimulus, LetterStimulus):
            surf = self.font_huge.render(stimulus.letter, True, self.ui_color)
        else:
            return
        self._blit_center(surf, self.center[1])

    def draw_feedback(self, text: Optional[str], is_correct: Optional[bool]) -> None:
        if not text:
            return
        color = self.ok_color if is_correct else self.bad_color
        surf = self.font_big.render(text, True, color)
        self._blit_center(surf, self.center[1])

    def draw_key_hints(self, hints: List[str]) -> None:
        yy = self.h * 0.85
        for line in hints:
            surf = self.font_small.render(line, True, self.ui_color)
            self._blit_center(surf, yy)
            yy += 26

    def draw_hud(self, block: Tuple[int, int], level_name: str, title: str) -> None:
        """HUD: блок, уровень, название задачи."""
        cur, total = block
        left = self.font_small.render(f"Block: {cur}/{total}", True, self.ui_color)
        right = self.font_small.render(f"Level: {level_name}", True, self.ui_color)
        mid = self.font_small.render(title, True, self.ui_color)
        self.screen.blit(left, (20, 15))
        self.screen.blit(right, (self.w - right.get_width() - 20, 15))
        self.screen.blit(mid, ((self.w - mid.get_width()) // 2, 15))

    def draw_text_screen(self, title: str, lines: List[str]) -> None:
        surf = self.font_mid.render(title, True, self.ui_color)
        self._blit_center(surf, self.h * 0.2)
        yy = self.h * 0.32
        for line in lines:
            surf = self.font_small.render(line, True, self.ui_color)
            self._blit_center(surf, yy)
            yy += 32

    def draw_progress(self, progress: BlockProgress, next_title: Optional[str]) -> None:
        lines = [
            f"Accuracy: {progress.block_accuracy * 100:.0f}%",
            f"Average reaction time: {progress.mean_rt_ms:.0f} ms",
            f"Current level: {progress.level} ({progress.level_name})",
            progress.adjustment_message,
            "",
            progress.motivational_message,
            "",
        ]
        if next_title:
            lines.append(f"Next: {next_title}")
        lines.append("Press SPACE to continue")
        self.draw_text_screen(f"Block {progress.block_number} of {progress.total_blocks} complete", lines)
