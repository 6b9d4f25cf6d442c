"""Pygame UI shell for BrainPulse.

The main menu offers the session modes and the history view. A session runs:
condition check -> one game screen per assigned game (with a transition screen
in between) -> report. Esc during a game abandons the whole session.

Deterministic timing/scoring/RNG/state lives in brainpulse/* (core modules).
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .adaptive import DifficultyController
from .api import ScoreSubmitter
from .clock import Clock, RealClock
from .cognitive_core import (
    Completed,
    ConditionReport,
    GameMode,
    GameOutcome,
    SessionData,
    TrialPhase,
)
from .color_stroop import StroopPayload
from .game_engine import GameEngine, GameSnapshot
from .n_back import NBackPayload
from .persistence import JsonProfileStore, SqliteSessionStore
from .quick_math import MathPayload
from .registry import MODE_CONFIG, GameRegistry, build_default_registry
from .scoring import difficulty_label, format_duration
from .sequence_memory import SequencePayload
from .session import SessionOrchestrator, SessionState
from .settings import Settings
from .speed_match import Shape, SpeedMatchPayload

logger = logging.getLogger("brainpulse.app")


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
HEADER_BG = (18, 30, 118)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
ACTIVE_BG = (244, 248, 255)
ACTIVE_TEXT = (14, 26, 74)
GOOD = (0, 184, 148)

_NUMBER_KEYS = {
    pygame.K_1: 1,
    pygame.K_2: 2,
    pygame.K_3: 3,
    pygame.K_4: 4,
    pygame.K_5: 5,
    pygame.K_6: 6,
    pygame.K_7: 7,
    pygame.K_8: 8,
    pygame.K_9: 9,
    pygame.K_KP1: 1,
    pygame.K_KP2: 2,
    pygame.K_KP3: 3,
    pygame.K_KP4: 4,
    pygame.K_KP5: 5,
    pygame.K_KP6: 6,
    pygame.K_KP7: 7,
    pygame.K_KP8: 8,
    pygame.K_KP9: 9,
}


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

    @property
    def top(self) -> Screen | None:
        return self._screens[-1] if self._screens else None

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def replace(self, screen: Screen) -> None:
        self.pop()
        self.push(screen)

    def pop_to_root(self) -> None:
        del self._screens[1:]

    def quit(self) -> None:
        self._running = False

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
        self._screens[-1].render(self._surface)


def _fit_label(font: pygame.font.Font, label: str, max_width: int) -> str:
    if max_width <= 0:
        return ""
    if font.size(label)[0] <= max_width:
        return label
    clipped = label
    while clipped and font.size(f"{clipped}...")[0] > max_width:
        clipped = clipped[:-1]
    return f"{clipped}..." if clipped else "..."


def _draw_frame(surface: pygame.Surface, title: str, tag: str, title_font: pygame.font.Font,
                hint_font: pygame.font.Font) -> pygame.Rect:
    """Panel + header shared by every screen. Returns the content rect."""

    w, h = surface.get_size()
    surface.fill(BG)

    frame_margin = max(10, min(26, w // 34))
    frame = pygame.Rect(
        frame_margin,
        frame_margin,
        max(260, w - frame_margin * 2),
        max(220, h - frame_margin * 2),
    )
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)

    header_h = max(34, min(52, h // 8))
    header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, header_h)
    pygame.draw.rect(surface, HEADER_BG, header)
    pygame.draw.line(surface, BORDER, (header.x, header.bottom), (header.right, header.bottom), 1)

    tag_s = hint_font.render(tag, True, TEXT_MUTED)
    surface.blit(tag_s, (header.x + 12, header.y + (header.h - tag_s.get_height()) // 2))
    title_s = title_font.render(title, True, TEXT_MAIN)
    surface.blit(title_s, title_s.get_rect(center=(frame.centerx, header.centery)))

    return pygame.Rect(frame.x + 16, header.bottom + 12, frame.w - 32, frame.bottom - header.bottom - 24)


def _draw_footer(surface: pygame.Surface, font: pygame.font.Font, text: str) -> None:
    w, h = surface.get_size()
    foot = font.render(text, True, TEXT_MUTED)
    surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - max(10, min(26, w // 34)) - 10)))


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
        list_rect = _draw_frame(surface, self._title, "MENU", self._title_font, self._hint_font)
        list_rect.h -= 30
        pygame.draw.rect(surface, (6, 13, 92), list_rect)
        pygame.draw.rect(surface, (78, 102, 170), list_rect, 1)

        item_count = max(1, len(self._items))
        gap = max(4, min(10, list_rect.h // max(10, item_count * 3)))
        row_h = max(30, min(44, (list_rect.h - gap * (item_count + 1)) // item_count))
        total_h = row_h * item_count + gap * (item_count - 1)
        y = list_rect.y + max(8, (list_rect.h - total_h) // 2)

        for idx, item in enumerate(self._items):
            row = pygame.Rect(list_rect.x + 12, y, list_rect.w - 24, row_h)
            selected = idx == self._selected
            if selected:
                pygame.draw.rect(surface, ACTIVE_BG, row)
                pygame.draw.rect(surface, (120, 142, 196), row, 2)
            else:
                pygame.draw.rect(surface, (9, 20, 106), row)
                pygame.draw.rect(surface, (62, 84, 152), row, 1)

            color = ACTIVE_TEXT if selected else TEXT_MAIN
            label = _fit_label(self._item_font, item.label, row.w - 20)
            text = self._item_font.render(label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h + gap

        _draw_footer(surface, self._hint_font, "Enter/Space: Select  |  Esc/Backspace: Back")


class SessionFlow:
    """Glue between the session orchestrator and the screen stack."""

    def __init__(
        self,
        app: App,
        orchestrator: SessionOrchestrator,
        *,
        engine_clock: Clock,
        seed_factory: Callable[[], int],
    ) -> None:
        self._app = app
        self._orch = orchestrator
        self._clock = engine_clock
        self._seed_factory = seed_factory

    @property
    def orchestrator(self) -> SessionOrchestrator:
        return self._orch

    def start(self, mode: GameMode) -> None:
        self._orch.begin(mode)
        self._app.push(ConditionCheckScreen(self._app, self))

    def cancel_condition(self) -> None:
        if self._orch.state is SessionState.AWAITING_CONDITION:
            self._orch.abort()
        self._app.pop()

    def submit_condition(self, report: ConditionReport) -> None:
        self._orch.submit_condition(report)
        self._app.replace(self._game_screen())

    def on_outcome(self, outcome: GameOutcome) -> None:
        state = self._orch.record_outcome(outcome)
        if state is SessionState.IDLE:
            self._app.pop_to_root()
        elif state is SessionState.TRANSITION:
            assert isinstance(outcome, Completed)
            self._app.replace(TransitionScreen(self._app, self, last_score=outcome.result.score))
        else:
            session = self._orch.finalize()
            self._app.replace(ReportScreen(self._app, session, registry_names=self._game_names()))

    def next_game(self) -> None:
        self._orch.advance()
        self._app.replace(self._game_screen())

    def _game_screen(self) -> GameScreen:
        engine = self._orch.create_engine(self._clock, self._seed_factory())
        return GameScreen(self._app, engine, on_outcome=self.on_outcome)

    def _game_names(self) -> dict[str, str]:
        return {g.id: g.name for g in self._orch.games}


class ConditionCheckScreen:
    _FIELDS = (
        ("Sleep quality", "1 = poor, 5 = great"),
        ("Energy level", "1 = drained, 5 = energised"),
        ("Stress level", "1 = calm, 5 = very stressed"),
    )

    def __init__(self, app: App, flow: SessionFlow) -> None:
        self._app = app
        self._flow = flow
        self._values = [3, 3, 3]
        self._row = 0
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def values(self) -> tuple[int, int, int]:
        return (self._values[0], self._values[1], self._values[2])

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._row = (self._row - 1) % len(self._values)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._row = (self._row + 1) % len(self._values)
        elif key in (pygame.K_LEFT, pygame.K_a):
            self._values[self._row] = max(1, self._values[self._row] - 1)
        elif key in (pygame.K_RIGHT, pygame.K_d):
            self._values[self._row] = min(5, self._values[self._row] + 1)
        elif key in _NUMBER_KEYS and 1 <= _NUMBER_KEYS[key] <= 5:
            self._values[self._row] = _NUMBER_KEYS[key]
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            sleep, energy, stress = self._values
            self._flow.submit_condition(
                ConditionReport(sleep_quality=sleep, energy_level=energy, stress_level=stress)
            )
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._flow.cancel_condition()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "How are you today?", "CHECK-IN", self._title_font, self._hint_font)
        y = content.y + 30
        for idx, (label, hint) in enumerate(self._FIELDS):
            selected = idx == self._row
            row = pygame.Rect(content.x + 20, y, content.w - 40, 70)
            pygame.draw.rect(surface, ACTIVE_BG if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (62, 84, 152), row, 1)
            color = ACTIVE_TEXT if selected else TEXT_MAIN
            surface.blit(self._item_font.render(label, True, color), (row.x + 12, row.y + 10))
            surface.blit(self._hint_font.render(hint, True, TEXT_MUTED if not selected else color), (row.x + 12, row.y + 42))

            for v in range(1, 6):
                cx = row.right - 40 - (5 - v) * 44
                filled = v <= self._values[idx]
                pygame.draw.circle(surface, GOOD if filled else (62, 84, 152), (cx, row.centery), 14, 0 if filled else 2)
            y += 90

        _draw_footer(surface, self._hint_font, "Up/Down: Field  |  Left/Right or 1-5: Value  |  Enter: Start  |  Esc: Cancel")


class GameScreen:
    """Renders any engine snapshot and turns key presses into responses."""

    def __init__(self, app: App, engine: GameEngine, *, on_outcome: Callable[[GameOutcome], None]) -> None:
        self._app = app
        self._engine = engine
        self._on_outcome = on_outcome
        self._reported = False
        self._tile_hitboxes: list[tuple[pygame.Rect, int]] = []
        self._option_hitboxes: list[tuple[pygame.Rect, object]] = []

        self._small_font = pygame.font.Font(None, 24)
        self._tiny_font = pygame.font.Font(None, 20)
        self._big_font = pygame.font.Font(None, 96)
        self._mid_font = pygame.font.Font(None, 52)
        self._title_font = pygame.font.Font(None, 42)

    @property
    def engine(self) -> GameEngine:
        return self._engine

    def handle_event(self, event: pygame.event.Event) -> None:
        snap = self._engine.snapshot()

        if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
            self._engine.exit()
            self._report_outcome()
            return

        if snap.phase is TrialPhase.READY:
            if event.type == pygame.KEYDOWN and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._engine.start()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
            pos = getattr(event, "pos", None)
            if pos is None:
                return
            for rect, tile in self._tile_hitboxes:
                if rect.collidepoint(pos):
                    self._engine.submit(tile)
                    return
            for rect, value in self._option_hitboxes:
                if rect.collidepoint(pos):
                    self._engine.submit(value)
                    return
            return

        if event.type != pygame.KEYDOWN:
            return
        response = self._response_for_key(event.key, snap)
        if response is not None:
            self._engine.submit(response)

    @staticmethod
    def _response_for_key(key: int, snap: GameSnapshot) -> object | None:
        p = snap.payload
        if isinstance(p, (SpeedMatchPayload, NBackPayload)):
            if key in (pygame.K_RIGHT, pygame.K_y, pygame.K_j):
                return True
            if key in (pygame.K_LEFT, pygame.K_n, pygame.K_f):
                return False
            return None

        choice = _NUMBER_KEYS.get(key)
        if choice is None:
            return None
        if isinstance(p, StroopPayload):
            return p.options[choice - 1] if choice <= len(p.options) else None
        if isinstance(p, MathPayload):
            return p.choices[choice - 1] if choice <= len(p.choices) else None
        if isinstance(p, SequencePayload):
            return choice - 1 if choice <= p.grid_size * p.grid_size else None
        return None

    def _report_outcome(self) -> None:
        outcome = self._engine.outcome
        if outcome is None or self._reported:
            return
        self._reported = True
        self._on_outcome(outcome)

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        if self._engine.outcome is not None:
            self._report_outcome()
            return

        snap = self._engine.snapshot()
        content = _draw_frame(
            surface, snap.title, difficulty_label(snap.difficulty).en.upper(), self._title_font, self._tiny_font
        )
        self._tile_hitboxes = []
        self._option_hitboxes = []

        if snap.time_remaining_s is not None:
            rem = int(math.ceil(snap.time_remaining_s))
            timer = self._small_font.render(f"{rem // 60:02d}:{rem % 60:02d}", True, TEXT_MAIN)
            surface.blit(timer, timer.get_rect(topright=(content.right, content.y)))
        stats = self._small_font.render(f"Correct: {snap.correct}/{snap.total}", True, TEXT_MUTED)
        surface.blit(stats, (content.x, content.y))

        p = snap.payload
        if isinstance(p, SpeedMatchPayload):
            self._render_speed_match(surface, content, p)
        elif isinstance(p, StroopPayload):
            self._render_stroop(surface, content, p)
        elif isinstance(p, NBackPayload):
            self._render_n_back(surface, content, p)
        elif isinstance(p, MathPayload):
            self._render_math(surface, content, p)
        elif isinstance(p, SequencePayload):
            self._render_sequence(surface, content, p)

        prompt = self._small_font.render(snap.prompt, True, TEXT_MAIN)
        surface.blit(prompt, prompt.get_rect(midbottom=(content.centerx, content.bottom - 24)))
        _draw_footer(surface, self._tiny_font, "Esc: Quit session")

    def _render_speed_match(self, surface: pygame.Surface, content: pygame.Rect, p: SpeedMatchPayload) -> None:
        center = (content.centerx, content.centery - 10)
        _draw_shape(surface, p.shape, pygame.Color(p.color), center, min(90, content.h // 4))
        if not p.is_first:
            hint = self._small_font.render("Left / N: different      Right / Y: same", True, TEXT_MUTED)
            surface.blit(hint, hint.get_rect(midbottom=(content.centerx, content.bottom - 56)))

    def _render_stroop(self, surface: pygame.Surface, content: pygame.Rect, p: StroopPayload) -> None:
        word = self._big_font.render(p.word, True, pygame.Color(p.ink_hex))
        surface.blit(word, word.get_rect(center=(content.centerx, content.y + content.h // 3)))

        n = len(p.options)
        btn_w = min(150, (content.w - 20 * (n + 1)) // max(1, n))
        total = n * btn_w + (n - 1) * 20
        x = content.centerx - total // 2
        y = content.y + content.h // 2 + 20
        for idx, option in enumerate(p.options):
            rect = pygame.Rect(x, y, btn_w, 56)
            pygame.draw.rect(surface, pygame.Color(option.hex), rect)
            pygame.draw.rect(surface, BORDER, rect, 2)
            label = self._small_font.render(f"{idx + 1}. {option.name}", True, TEXT_MAIN)
            surface.blit(label, label.get_rect(center=rect.center))
            self._option_hitboxes.append((rect, option))
            x += btn_w + 20

    def _render_n_back(self, surface: pygame.Surface, content: pygame.Rect, p: NBackPayload) -> None:
        cell = min(90, (content.h - 120) // p.grid_size)
        size = cell * p.grid_size
        grid = pygame.Rect(content.centerx - size // 2, content.y + 40, size, size)
        for i in range(p.grid_size * p.grid_size):
            r = pygame.Rect(grid.x + (i % p.grid_size) * cell, grid.y + (i // p.grid_size) * cell, cell, cell)
            pygame.draw.rect(surface, (9, 20, 106), r)
            pygame.draw.rect(surface, (62, 84, 152), r, 1)
            if p.active_cell == i:
                pygame.draw.rect(surface, pygame.Color(p.color), r.inflate(-10, -10))
                glyph = self._mid_font.render(p.symbol, True, TEXT_MAIN)
                surface.blit(glyph, glyph.get_rect(center=r.center))
        label = self._small_font.render(f"{p.n_value}-back", True, TEXT_MUTED)
        surface.blit(label, label.get_rect(midtop=(content.centerx, content.y)))
        if p.scorable:
            hint = self._small_font.render("Left / N: no match      Right / Y: match", True, TEXT_MUTED)
            surface.blit(hint, hint.get_rect(midbottom=(content.centerx, content.bottom - 56)))

    def _render_math(self, surface: pygame.Surface, content: pygame.Rect, p: MathPayload) -> None:
        problem = self._big_font.render(p.display, True, TEXT_MAIN)
        surface.blit(problem, problem.get_rect(center=(content.centerx, content.y + content.h // 3)))

        btn_w = 160
        total = len(p.choices) * btn_w + (len(p.choices) - 1) * 20
        x = content.centerx - total // 2
        y = content.y + content.h // 2 + 20
        for idx, choice in enumerate(p.choices):
            rect = pygame.Rect(x, y, btn_w, 56)
            pygame.draw.rect(surface, (9, 20, 106), rect)
            pygame.draw.rect(surface, BORDER, rect, 2)
            label = self._mid_font.render(f"{idx + 1}) {choice}", True, TEXT_MAIN)
            surface.blit(label, label.get_rect(center=rect.center))
            self._option_hitboxes.append((rect, choice))
            x += btn_w + 20

    def _render_sequence(self, surface: pygame.Surface, content: pygame.Rect, p: SequencePayload) -> None:
        cell = min(80, (content.h - 110) // p.grid_size)
        size = cell * p.grid_size
        grid = pygame.Rect(content.centerx - size // 2, content.y + 36, size, size)
        for i in range(p.grid_size * p.grid_size):
            r = pygame.Rect(grid.x + (i % p.grid_size) * cell, grid.y + (i // p.grid_size) * cell, cell, cell)
            inner = r.inflate(-8, -8)
            lit = p.highlighted_tile == i
            pygame.draw.rect(surface, ACTIVE_BG if lit else (9, 20, 106), inner, border_radius=6)
            pygame.draw.rect(surface, (62, 84, 152), inner, 1, border_radius=6)
            self._tile_hitboxes.append((inner, i))

        info = self._small_font.render(
            f"Length {p.sequence_length}   Entered {len(p.entered)}   Strikes {p.strikes}",
            True,
            TEXT_MUTED,
        )
        surface.blit(info, info.get_rect(midtop=(content.centerx, content.y)))


def _draw_shape(surface: pygame.Surface, shape: Shape, color: pygame.Color, center: tuple[int, int], r: int) -> None:
    cx, cy = center

    def regular(n: int, start_deg: float) -> list[tuple[float, float]]:
        return [
            (cx + r * math.cos(math.radians(start_deg + 360.0 * k / n)), cy + r * math.sin(math.radians(start_deg + 360.0 * k / n)))
            for k in range(n)
        ]

    if shape is Shape.CIRCLE:
        pygame.draw.circle(surface, color, center, r)
    elif shape is Shape.SQUARE:
        pygame.draw.rect(surface, color, pygame.Rect(cx - r, cy - r, r * 2, r * 2))
    elif shape is Shape.TRIANGLE:
        pygame.draw.polygon(surface, color, regular(3, -90))
    elif shape is Shape.DIAMOND:
        pygame.draw.polygon(surface, color, regular(4, -90))
    elif shape is Shape.PENTAGON:
        pygame.draw.polygon(surface, color, regular(5, -90))
    elif shape is Shape.HEXAGON:
        pygame.draw.polygon(surface, color, regular(6, 0))
    elif shape is Shape.OCTAGON:
        pygame.draw.polygon(surface, color, regular(8, 22.5))
    elif shape is Shape.STAR:
        pts: list[tuple[float, float]] = []
        for k in range(10):
            rad = r if k % 2 == 0 else r * 0.45
            ang = math.radians(-90 + 36 * k)
            pts.append((cx + rad * math.cos(ang), cy + rad * math.sin(ang)))
        pygame.draw.polygon(surface, color, pts)
    elif shape is Shape.CROSS:
        t = r // 3
        pygame.draw.rect(surface, color, pygame.Rect(cx - t, cy - r, t * 2, r * 2))
        pygame.draw.rect(surface, color, pygame.Rect(cx - r, cy - t, r * 2, t * 2))
    elif shape is Shape.HEART:
        lobe = r // 2
        pygame.draw.circle(surface, color, (cx - lobe, cy - lobe // 2), lobe)
        pygame.draw.circle(surface, color, (cx + lobe, cy - lobe // 2), lobe)
        pygame.draw.polygon(surface, color, [(cx - r, cy - lobe // 4), (cx + r, cy - lobe // 4), (cx, cy + r)])
    elif shape is Shape.ARROW:
        t = r // 3
        pygame.draw.rect(surface, color, pygame.Rect(cx - r, cy - t, r, t * 2))
        pygame.draw.polygon(surface, color, [(cx, cy - r), (cx + r, cy), (cx, cy + r)])
    elif shape is Shape.MOON:
        pygame.draw.circle(surface, color, center, r)
        pygame.draw.circle(surface, PANEL_BG, (cx + r // 2, cy - r // 4), int(r * 0.85))


class TransitionScreen:
    def __init__(self, app: App, flow: SessionFlow, *, last_score: int) -> None:
        self._app = app
        self._flow = flow
        self._last_score = last_score
        self._title_font = pygame.font.Font(None, 42)
        self._big_font = pygame.font.Font(None, 96)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._flow.next_game()
        elif event.key == pygame.K_ESCAPE:
            self._flow.orchestrator.abort()
            self._app.pop_to_root()

    def render(self, surface: pygame.Surface) -> None:
        orch = self._flow.orchestrator
        content = _draw_frame(surface, "Nice work", "SESSION", self._title_font, self._hint_font)
        score = self._big_font.render(str(self._last_score), True, TEXT_MAIN)
        surface.blit(score, score.get_rect(center=(content.centerx, content.y + content.h // 3)))

        nxt = orch.next_game
        if nxt is not None:
            line = f"Next ({orch.game_index + 2}/{orch.game_count}): {nxt.name}"
            text = self._item_font.render(line, True, TEXT_MAIN)
            surface.blit(text, text.get_rect(center=(content.centerx, content.y + content.h * 2 // 3)))
            desc = self._hint_font.render(nxt.description, True, TEXT_MUTED)
            surface.blit(desc, desc.get_rect(center=(content.centerx, content.y + content.h * 2 // 3 + 34)))

        _draw_footer(surface, self._hint_font, "Enter: Next game  |  Esc: Quit session")


class ReportScreen:
    def __init__(self, app: App, session: SessionData, *, registry_names: dict[str, str]) -> None:
        self._app = app
        self._session = session
        self._names = registry_names
        self._title_font = pygame.font.Font(None, 42)
        self._big_font = pygame.font.Font(None, 120)
        self._item_font = pygame.font.Font(None, 30)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE, pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop_to_root()

    def render(self, surface: pygame.Surface) -> None:
        s = self._session
        content = _draw_frame(surface, "Brain condition", s.mode.value.upper(), self._title_font, self._hint_font)
        score = self._big_font.render(str(s.composite_score), True, TEXT_MAIN)
        surface.blit(score, score.get_rect(midtop=(content.centerx, content.y + 10)))

        y = content.y + 120
        for r in s.game_results:
            name = self._names.get(r.game_id, r.game_id)
            line = (
                f"{name}: {r.score}   accuracy {round(r.accuracy * 100)}%   "
                f"{format_duration(r.duration_ms)}   {difficulty_label(r.difficulty).en}"
            )
            text = self._item_font.render(_fit_label(self._item_font, line, content.w - 40), True, TEXT_MAIN)
            surface.blit(text, (content.x + 20, y))
            y += 36

        _draw_footer(surface, self._hint_font, "Enter/Esc: Back to menu")


class HistoryScreen:
    def __init__(self, app: App, store: SqliteSessionStore, *, limit: int = 8) -> None:
        self._app = app
        self._sessions = store.recent_sessions(limit)
        self._summaries = store.daily_summaries(1)
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 28)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "History", "RECENT", self._title_font, self._hint_font)
        sessions = self._sessions
        summaries = self._summaries

        y = content.y + 10
        if summaries:
            today = summaries[0]
            streak = self._item_font.render(
                f"{today['date']}: best {today['best_score']}  |  streak {today['streak_count']} day(s)",
                True,
                TEXT_MUTED,
            )
            surface.blit(streak, (content.x + 20, y))
            y += 40

        if not sessions:
            empty = self._item_font.render("No sessions yet.", True, TEXT_MUTED)
            surface.blit(empty, (content.x + 20, y))
        for s in sessions:
            games = ", ".join(r.game_id for r in s.game_results)
            line = f"{s.started_at[:16].replace('T', ' ')}  {s.mode.value:<12} {s.composite_score:>3}  {games}"
            text = self._item_font.render(_fit_label(self._item_font, line, content.w - 40), True, TEXT_MAIN)
            surface.blit(text, (content.x + 20, y))
            y += 32

        _draw_footer(surface, self._hint_font, "Esc: Back")


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def _build_orchestrator(
    settings: Settings,
    registry: GameRegistry,
    history: SqliteSessionStore,
) -> SessionOrchestrator:
    submitter = ScoreSubmitter(settings.api_url) if settings.submit_scores else None
    return SessionOrchestrator(
        registry=registry,
        controller=DifficultyController(JsonProfileStore(settings.profile_path)),
        store=history,
        submitter=submitter,
        device_id=settings.device_id() if submitter is not None else "",
    )


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    settings: Settings | None = None,
) -> int:
    settings = settings or Settings.from_env()
    logger.info("data directory: %s", settings.data_dir)

    pygame.init()
    pygame.display.set_caption("BrainPulse")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    registry = build_default_registry()
    history = SqliteSessionStore(settings.history_path)
    orchestrator = _build_orchestrator(settings, registry, history)
    flow = SessionFlow(app, orchestrator, engine_clock=RealClock(), seed_factory=_new_seed)

    def open_mode(mode: GameMode) -> Callable[[], None]:
        return lambda: flow.start(mode)

    main_items = [
        MenuItem(f"{cfg.title}: {cfg.description}", open_mode(mode))
        for mode, cfg in MODE_CONFIG.items()
        if cfg.enabled
    ]
    main_items.append(MenuItem("History", lambda: app.push(HistoryScreen(app, history))))
    main_items.append(MenuItem("Quit", app.quit))

    app.push(MenuScreen(app, "BrainPulse", main_items, is_root=True))

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
        history.close()
        pygame.quit()

    return 0
