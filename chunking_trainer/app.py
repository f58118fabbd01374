"""Pygame UI shell for the Chunking Trainer.

The main menu opens the Digit Span Task: baseline recall until three digit
errors, then delimiter-assisted (chunked) recall until three more.

Deterministic timing/scoring/RNG/state lives in chunking_trainer/* (core
modules); this file only renders snapshots and forwards key presses.
"""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import RealClock
from .digit_span import DigitSpanEngine, DigitSpanSnapshot, build_digit_span_engine
from .display import (
    feedback_text,
    history_line,
    phase_label,
    phase_rule_text,
    progress_text,
    scoreboard,
    stage_text,
)
from .results import SessionHistory

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60
FULLSCREEN_ENV = "CHUNKING_FULLSCREEN"
MAX_INPUT_CHARS = 16


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def close_all(self) -> None:
        for screen in reversed(self._screens):
            close = getattr(screen, "close", None)
            if close is not None:
                close()

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        # The display surface changes when fullscreen is toggled.
        current = pygame.display.get_surface()
        if current is not None:
            self._surface = current
        self._screens[-1].render(self._surface)


class NoticeScreen:
    def __init__(self, app: App, title: str, message: str) -> None:
        self._app = app
        self._title = title
        self._message = message
        self._small_font = pygame.font.Font(None, 26)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN, pygame.K_KP_ENTER):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        surface.fill((10, 10, 14))
        title = self._app.font.render(self._title, True, (235, 235, 245))
        surface.blit(title, (40, 40))
        rect = pygame.Rect(40, 100, surface.get_width() - 80, surface.get_height() - 160)
        _draw_wrapped_text(surface, self._message, rect, color=(200, 206, 220), font=self._small_font, max_lines=6)
        hint = self._small_font.render("Press Enter or Esc to go back.", True, (150, 150, 165))
        surface.blit(hint, (40, surface.get_height() - 50))


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        bg = (3, 9, 78)
        panel_bg = (8, 18, 104)
        border = (226, 236, 255)
        text_main = (238, 245, 255)
        text_muted = (186, 200, 224)
        active_bg = (244, 248, 255)
        active_text = (14, 26, 74)

        surface.fill(bg)
        margin = max(10, min(26, w // 34))
        frame = pygame.Rect(margin, margin, w - margin * 2, h - margin * 2)
        pygame.draw.rect(surface, panel_bg, frame)
        pygame.draw.rect(surface, border, frame, 2)

        title = self._title_font.render(self._title, True, text_main)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))

        row_h = 40
        y = frame.y + 90
        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 40, y, frame.w - 80, row_h)
            selected = idx == self._selected
            pygame.draw.rect(surface, active_bg if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (62, 84, 152), row, 1)
            text = self._item_font.render(item.label, True, active_text if selected else text_main)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h + 8

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, text_muted)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class DigitSpanScreen:
    """Presentation adapter for ``DigitSpanEngine``.

    Enter launches a session or submits the typed digits. Esc aborts a running
    session (a second Esc leaves the screen); F12 aborts and leaves at once.
    """

    def __init__(
        self,
        app: App,
        *,
        engine_factory: Callable[[], DigitSpanEngine],
        allow_fullscreen: bool = True,
    ) -> None:
        self._app = app
        self._engine = engine_factory()
        self._input = ""
        self._allow_fullscreen = allow_fullscreen
        self._fullscreen_active = False
        self._fullscreen_denied = False

        self._tiny_font = pygame.font.Font(None, 20)
        self._small_font = pygame.font.Font(None, 26)
        self._mid_font = pygame.font.Font(None, 52)
        self._big_font = pygame.font.Font(None, 84)

    @property
    def engine(self) -> DigitSpanEngine:
        return self._engine

    def close(self) -> None:
        self._engine.abort()
        self._sync_fullscreen(False)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        snap = self._engine.snapshot()
        key = event.key

        if key == pygame.K_F12:
            self._leave()
            return
        if key == pygame.K_ESCAPE:
            if snap.in_session:
                self._engine.abort()
                self._input = ""
            else:
                self._leave()
            return

        if not snap.in_session:
            if key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._input = ""
                self._engine.start()
            elif key == pygame.K_s:
                self._app.push(NoticeScreen(self._app, "Settings", self._engine.open_settings()))
            elif key == pygame.K_BACKSPACE:
                self._leave()
            return

        # Keystrokes are dropped while the engine holds the input lock.
        if snap.input_locked or not snap.accepting_input:
            return

        if key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if self._engine.submit(self._input):
                self._input = ""
            return
        if key == pygame.K_BACKSPACE:
            self._input = self._input[:-1]
            return

        ch = event.unicode
        if ch and ch.isprintable() and len(self._input) < MAX_INPUT_CHARS:
            self._input += ch

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        self._sync_fullscreen(snap.fullscreen_requested)

        w, h = surface.get_size()
        bg = (2, 8, 114)
        edge = (232, 240, 255)
        text_main = (236, 244, 255)
        text_muted = (184, 198, 224)

        surface.fill(bg)
        margin = max(8, min(16, w // 56))
        frame = pygame.Rect(margin, margin, w - margin * 2, h - margin * 2)
        pygame.draw.rect(surface, edge, frame, 1)

        header_h = max(24, min(32, h // 18))
        header = pygame.Rect(frame.x + 1, frame.y + 1, frame.w - 2, header_h)
        pygame.draw.line(surface, edge, (header.x, header.bottom), (header.right, header.bottom), 1)

        phase = self._tiny_font.render(phase_label(snap.phase), True, text_main)
        surface.blit(phase, (header.x + 10, header.y + (header.h - phase.get_height()) // 2))
        progress = self._tiny_font.render(progress_text(snap), True, text_muted)
        surface.blit(progress, progress.get_rect(midright=(header.right - 10, header.centery)))

        stage = pygame.Rect(frame.x + 20, header.bottom + 16, frame.w - 40, int(h * 0.28))
        self._render_stage(surface, stage, snap, text_main)
        self._render_countdown(surface, stage, snap, edge)

        y = stage.bottom + 12
        if snap.accepting_input:
            y = self._render_answer_box(surface, pygame.Rect(stage.x, y, min(460, stage.w), 44), snap)

        fb = pygame.Rect(stage.x, y, stage.w, 48)
        _draw_wrapped_text(surface, feedback_text(snap), fb, color=text_main, font=self._small_font, max_lines=2)
        y = fb.bottom + 6

        self._render_scoreboard(surface, pygame.Rect(stage.x, y, stage.w, 54), snap, edge, text_main, text_muted)
        y += 64

        rule = phase_rule_text(snap)
        if rule:
            surface.blit(self._tiny_font.render(rule, True, text_muted), (stage.x, y))
            y += 22

        if snap.history:
            surface.blit(self._small_font.render("Recent Sessions", True, text_main), (stage.x, y))
            y += 24
            for summary in snap.history:
                if y > frame.bottom - 40:
                    break
                surface.blit(self._tiny_font.render(history_line(summary), True, text_muted), (stage.x + 8, y))
                y += 20

        hint = "Enter: Launch  |  S: Settings  |  Esc: Back" if not snap.in_session else "Esc: Abort session"
        foot = self._tiny_font.render(hint, True, text_muted)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 8)))

    def _render_stage(
        self,
        surface: pygame.Surface,
        rect: pygame.Rect,
        snap: DigitSpanSnapshot,
        color: tuple[int, int, int],
    ) -> None:
        pygame.draw.rect(surface, (8, 18, 120), rect)
        text = stage_text(snap)
        if snap.display_text is not None:
            digits = self._big_font.render(text, True, color)
            if digits.get_width() > int(rect.w * 0.92):
                digits = self._mid_font.render(text, True, color)
            surface.blit(digits, digits.get_rect(center=rect.center))
            return
        _draw_wrapped_text(surface, text, rect.inflate(-30, -30), color=color, font=self._small_font, max_lines=3)

    def _render_countdown(
        self,
        surface: pygame.Surface,
        rect: pygame.Rect,
        snap: DigitSpanSnapshot,
        color: tuple[int, int, int],
    ) -> None:
        if snap.exposure_remaining_s is None or snap.exposure_s <= 0.0:
            return
        frac = max(0.0, min(1.0, snap.exposure_remaining_s / snap.exposure_s))
        bar = pygame.Rect(rect.x, rect.bottom - 4, int(rect.w * frac), 4)
        pygame.draw.rect(surface, color, bar)

    def _render_answer_box(self, surface: pygame.Surface, box: pygame.Rect, snap: DigitSpanSnapshot) -> int:
        pygame.draw.rect(surface, (6, 15, 92), box)
        pygame.draw.rect(surface, (180, 196, 230), box, 2)
        if self._input:
            entry = self._small_font.render(self._input + "|", True, (236, 244, 255))
        else:
            entry = self._small_font.render(f"Enter {snap.sequence_length} digits", True, (120, 136, 176))
        surface.blit(entry, (box.x + 12, box.y + (box.h - entry.get_height()) // 2))
        return box.bottom + 8

    def _render_scoreboard(
        self,
        surface: pygame.Surface,
        rect: pygame.Rect,
        snap: DigitSpanSnapshot,
        edge: tuple[int, int, int],
        text_main: tuple[int, int, int],
        text_muted: tuple[int, int, int],
    ) -> None:
        cells = scoreboard(snap.live_scores)
        cell_w = rect.w // len(cells)
        for i, (label, value) in enumerate(cells):
            cell = pygame.Rect(rect.x + i * cell_w, rect.y, cell_w - 8, rect.h)
            pygame.draw.rect(surface, edge, cell, 1)
            surface.blit(self._tiny_font.render(label, True, text_muted), (cell.x + 8, cell.y + 6))
            surface.blit(self._small_font.render(value, True, text_main), (cell.x + 8, cell.y + 26))

    def _sync_fullscreen(self, wanted: bool) -> None:
        if not wanted:
            self._fullscreen_denied = False
            if self._fullscreen_active:
                self._fullscreen_active = False
                try:
                    pygame.display.toggle_fullscreen()
                except pygame.error as exc:
                    # Already windowed (window manager or user left fullscreen).
                    logger.debug("Leaving fullscreen failed: %s", exc)
            return

        if self._fullscreen_active or self._fullscreen_denied or not self._allow_fullscreen:
            return
        try:
            ok = pygame.display.toggle_fullscreen()
        except pygame.error as exc:
            logger.warning("Fullscreen request refused (%s); continuing windowed", exc)
            self._fullscreen_denied = True
            return
        if not ok:
            logger.warning("Fullscreen request refused; continuing windowed")
            self._fullscreen_denied = True
            return
        self._fullscreen_active = True

    def _leave(self) -> None:
        self.close()
        self._input = ""
        self._app.pop()


def _draw_wrapped_text(
    surface: pygame.Surface,
    text: str,
    rect: pygame.Rect,
    *,
    color: tuple[int, int, int],
    font: pygame.font.Font,
    max_lines: int,
) -> None:
    words = str(text).split()
    lines: list[str] = []
    cur = ""
    for word in words:
        trial = word if cur == "" else f"{cur} {word}"
        if font.size(trial)[0] <= rect.w:
            cur = trial
            continue
        if cur:
            lines.append(cur)
        cur = word
    if cur:
        lines.append(cur)

    y = rect.y
    line_h = font.get_linesize() + 2
    for line in lines[: max(0, max_lines)]:
        to_draw = line
        if font.size(to_draw)[0] > rect.w:
            while to_draw and font.size(f"{to_draw}...")[0] > rect.w:
                to_draw = to_draw[:-1]
            to_draw = f"{to_draw}..." if to_draw else "..."
        surface.blit(font.render(to_draw, True, color), (rect.x, y))
        y += line_h


def _fullscreen_allowed() -> bool:
    return os.environ.get(FULLSCREEN_ENV, "1").strip().lower() not in ("0", "false", "no", "off")


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    pygame.init()

    pygame.display.set_caption("Chunking Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    real_clock = RealClock()
    history = SessionHistory()
    allow_fullscreen = _fullscreen_allowed()

    def open_digit_span() -> None:
        seed = _new_seed()
        app.push(
            DigitSpanScreen(
                app,
                engine_factory=lambda: build_digit_span_engine(clock=real_clock, seed=seed, history=history),
                allow_fullscreen=allow_fullscreen,
            )
        )

    main_items = [
        MenuItem("Digit Span Task", open_digit_span),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Main Menu", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        app.close_all()
        pygame.quit()

    return 0
