from __future__ import annotations

import argparse
import importlib.metadata
import math
import os
import platform
import sys
from typing import Any, Iterator

from gridmerge.content.io import DEFAULT_STORAGE_KEY, JsonFileBlobStore, open_session
from gridmerge.content.rules import DEFAULT_GAME_RULES_PATH, load_game_rules_json
from gridmerge.content.tracks import load_position_track_json
from gridmerge.sim.grid import CellCoord
from gridmerge.sim.hash import session_hash
from gridmerge.sim.interactions import describe_hand
from gridmerge.sim.movement import MOVEMENT_MODE_MANUAL, MOVEMENT_MODE_SENSOR, MOVEMENT_MODES, PositionFix
from gridmerge.sim.session import CommandResult, GameSession
from gridmerge.sim.viewport import RenderSink
from gridmerge.sim.worldgen import CellState

CELL_SIZE = 40
WINDOW_SIZE = (760, 820)
HUD_HEIGHT = 100
SENSOR_STEP_SECONDS = 1.0
DEFAULT_SAVE_DIR = "saves"

TOKEN_CELL_COLOR = (52, 92, 196)
EMPTY_CELL_COLOR = (96, 96, 104)
GRID_LINE_COLOR = (35, 35, 40)
BACKGROUND_COLOR = (17, 18, 25)
TEXT_COLOR = (240, 240, 240)
WIN_COLOR = (255, 214, 90)

pygame: Any | None = None


class PygameCellLayer(RenderSink):
    """Mirror of the visible cells, kept current by viewport callbacks."""

    def __init__(self) -> None:
        self.cells: dict[CellCoord, CellState] = {}
        self.added = 0
        self.removed = 0
        self.updated = 0

    def add_cell(self, state: CellState) -> None:
        self.cells[state.coord] = state
        self.added += 1

    def remove_cell(self, coord: CellCoord) -> None:
        self.cells.pop(coord, None)
        self.removed += 1

    def update_cell_display(self, state: CellState) -> None:
        if state.coord in self.cells:
            self.cells[state.coord] = state
            self.updated += 1


def cell_to_pixel(coord: CellCoord, player_coord: CellCoord, center: tuple[float, float]) -> tuple[float, float]:
    """Center of ``coord`` on screen; north is up and the player's cell sits at ``center``."""
    return (
        center[0] + (coord.j - player_coord.j) * CELL_SIZE,
        center[1] - (coord.i - player_coord.i) * CELL_SIZE,
    )


def pixel_to_cell(pixel: tuple[float, float], player_coord: CellCoord, center: tuple[float, float]) -> CellCoord:
    dj = math.floor((pixel[0] - center[0] + CELL_SIZE / 2) / CELL_SIZE)
    di = -math.floor((pixel[1] - center[1] + CELL_SIZE / 2) / CELL_SIZE)
    return player_coord.offset(di, dj)


def player_to_pixel(session: GameSession, center: tuple[float, float]) -> tuple[float, float]:
    player = session.state.player
    if player.position is None:
        return center
    cell_center = session.anchor.cell_center(player.coord)
    tile = session.anchor.tile_degrees
    return (
        center[0] + (player.position.lng - cell_center.lng) / tile * CELL_SIZE,
        center[1] - (player.position.lat - cell_center.lat) / tile * CELL_SIZE,
    )


def _viewport_rect() -> pygame.Rect:
    return pygame.Rect(0, HUD_HEIGHT, WINDOW_SIZE[0], WINDOW_SIZE[1] - HUD_HEIGHT)


def _draw_cells(
    screen: pygame.Surface,
    layer: PygameCellLayer,
    session: GameSession,
    center: tuple[float, float],
    font: pygame.font.Font,
    *,
    clip_rect: pygame.Rect,
) -> None:
    old_clip = screen.get_clip()
    screen.set_clip(clip_rect)
    player_coord = session.state.player.coord
    for coord in sorted(layer.cells):
        state = layer.cells[coord]
        pixel_x, pixel_y = cell_to_pixel(coord, player_coord, center)
        rect = pygame.Rect(int(pixel_x - CELL_SIZE / 2), int(pixel_y - CELL_SIZE / 2), CELL_SIZE, CELL_SIZE)
        if state.value is None:
            pygame.draw.rect(screen, EMPTY_CELL_COLOR, rect, 1)
            continue
        pygame.draw.rect(screen, TOKEN_CELL_COLOR, rect)
        pygame.draw.rect(screen, GRID_LINE_COLOR, rect, 1)
        label = font.render(str(state.value), True, TEXT_COLOR)
        screen.blit(label, label.get_rect(center=rect.center))
    screen.set_clip(old_clip)


def _draw_player(screen: pygame.Surface, session: GameSession, center: tuple[float, float], *, clip_rect: pygame.Rect) -> None:
    old_clip = screen.get_clip()
    screen.set_clip(clip_rect)
    x, y = player_to_pixel(session, center)
    pygame.draw.circle(screen, (255, 243, 130), (int(x), int(y)), 8)
    pygame.draw.circle(screen, (15, 15, 15), (int(x), int(y)), 8, 1)
    screen.set_clip(old_clip)


def _draw_hud(screen: pygame.Surface, session: GameSession, font: pygame.font.Font, won: bool) -> None:
    player = session.state.player
    lines = [
        f"cell=({player.coord.i},{player.coord.j}) | mode={session.movement_mode} | {describe_hand(player.held)}",
        "Arrows move | LMB interact | N new game | M toggle mode | ESC quit",
        f"status: {session.last_status}",
    ]
    y = 12
    for line in lines:
        surface = font.render(line, True, TEXT_COLOR)
        screen.blit(surface, (12, y))
        y += 26
    if won:
        banner = font.render("You win!", True, WIN_COLOR)
        screen.blit(banner, (WINDOW_SIZE[0] - banner.get_width() - 12, 12))


def _direction_for_key(key: int) -> str | None:
    return {
        pygame.K_UP: "north",
        pygame.K_DOWN: "south",
        pygame.K_RIGHT: "east",
        pygame.K_LEFT: "west",
    }.get(key)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gridmerge-viewer",
        description="Run the gridmerge pygame map view.",
    )
    parser.add_argument("--rules-path", default=DEFAULT_GAME_RULES_PATH, help="Path to game rules JSON.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding session saves.")
    parser.add_argument("--storage-key", default=DEFAULT_STORAGE_KEY, help="Save slot name inside --save-dir.")
    parser.add_argument(
        "--movement-mode",
        choices=MOVEMENT_MODES,
        default=MOVEMENT_MODE_MANUAL,
        help="Initial movement mode.",
    )
    parser.add_argument(
        "--gps-track",
        help="Recorded position track JSON replayed as live location updates in sensor mode.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver for CI/testing and exit without opening a real window.",
    )
    return parser


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[gridmerge.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )
    for name in ("SDL_VIDEODRIVER", "SDL_AUDIODRIVER", "SDL_VIDEO_WINDOW_POS"):
        value = os.environ.get(name, "<unset>")
        print(f"[gridmerge.viewer] env {name}={value}")


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def _open_position_track(track_path: str | None) -> tuple[Iterator[PositionFix] | None, str | None]:
    if not track_path:
        return None, "no position source configured"
    try:
        track = load_position_track_json(track_path)
    except (OSError, ValueError) as exc:
        print(f"[gridmerge.viewer] position track unavailable path={track_path}: {exc}", file=sys.stderr)
        return None, f"could not read {track_path}"
    print(f"[gridmerge.viewer] position track loaded path={track_path} fixes={len(track)}")
    return iter(track), None


class PositionTrackPlayer:
    """Feeds recorded fixes to a sensor-mode session, one per ``SENSOR_STEP_SECONDS``."""

    def __init__(self, fixes: Iterator[PositionFix] | None, error: str | None) -> None:
        self.fixes = fixes
        self.error = error
        self._accumulator = 0.0

    def sensor_enabled(self, session: GameSession) -> list[CommandResult]:
        if self.error is None:
            return []
        return [session.location_unavailable(self.error)]

    def advance(self, session: GameSession, dt: float) -> list[CommandResult]:
        if session.movement_mode != MOVEMENT_MODE_SENSOR or self.fixes is None:
            self._accumulator = 0.0
            return []
        results: list[CommandResult] = []
        self._accumulator += dt
        while self._accumulator >= SENSOR_STEP_SECONDS:
            self._accumulator -= SENSOR_STEP_SECONDS
            fix = next(self.fixes, None)
            if fix is None:
                self.fixes = None
                self.error = "position track ended"
                results.append(session.location_unavailable(self.error))
                break
            results.append(session.update_position(fix))
        return results


def _build_viewer_session(
    rules_path: str,
    save_dir: str,
    storage_key: str,
    *,
    movement_mode: str,
) -> tuple[GameSession, PygameCellLayer]:
    rules = load_game_rules_json(rules_path)
    layer = PygameCellLayer()
    session, loaded = open_session(
        JsonFileBlobStore(save_dir),
        storage_key,
        rules,
        sink=layer,
        movement_mode=movement_mode,
    )
    if loaded.restored:
        payload = session.state.to_payload()
        print(
            "[gridmerge.viewer] restored "
            f"key={storage_key} cells={len(session.state.overlay)} "
            f"session_hash={session_hash(payload)}"
        )
    else:
        print(f"[gridmerge.viewer] fresh session key={storage_key} reason={loaded.reason}")
    return session, layer


def run_pygame_viewer(
    rules_path: str = DEFAULT_GAME_RULES_PATH,
    *,
    save_dir: str = DEFAULT_SAVE_DIR,
    storage_key: str = DEFAULT_STORAGE_KEY,
    movement_mode: str = MOVEMENT_MODE_MANUAL,
    gps_track: str | None = None,
    headless: bool = False,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[gridmerge.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()

    try:
        pygame_module.init()
    except Exception as exc:
        print(
            "[gridmerge.viewer] failed during pygame.init(): "
            f"{exc}. Hint: verify a working SDL video driver (set SDL_VIDEODRIVER=dummy for headless mode).",
            file=sys.stderr,
        )
        return 1

    try:
        session, layer = _build_viewer_session(rules_path, save_dir, storage_key, movement_mode=movement_mode)
    except (OSError, ValueError) as exc:
        print(f"[gridmerge.viewer] failed to initialize session: {exc}", file=sys.stderr)
        pygame_module.quit()
        return 1

    try:
        pygame_module.display.set_caption("gridmerge")
        screen = pygame_module.display.set_mode(WINDOW_SIZE)
    except Exception as exc:
        print(
            "[gridmerge.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: GUI sessions require a valid display; use --headless or GRIDMERGE_HEADLESS=1.",
            file=sys.stderr,
        )
        pygame_module.quit()
        return 1

    driver_name = pygame_module.display.get_driver()
    print(f"[gridmerge.viewer] display initialized: {driver_name}, window size={WINDOW_SIZE}")

    if headless:
        pygame_module.quit()
        return 0

    playback = PositionTrackPlayer(*_open_position_track(gps_track))
    if session.movement_mode == MOVEMENT_MODE_SENSOR:
        playback.sensor_enabled(session)

    clock = pygame_module.time.Clock()
    font = pygame_module.font.SysFont("consolas", 20)
    cell_font = pygame_module.font.SysFont("consolas", 16)
    viewport_rect = _viewport_rect()
    view_center = (float(viewport_rect.centerx), float(viewport_rect.centery))

    won = False
    running = True

    def report(result: CommandResult) -> None:
        nonlocal won
        won = won or result.win
        if result.saved is False:
            print(f"[gridmerge.viewer] save failed key={storage_key}", file=sys.stderr)

    while running:
        dt = clock.tick(60) / 1000.0

        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_ESCAPE:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_n:
                won = False
                report(session.new_game())
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_m:
                next_mode = MOVEMENT_MODE_SENSOR if session.movement_mode == MOVEMENT_MODE_MANUAL else MOVEMENT_MODE_MANUAL
                report(session.set_movement_mode(next_mode))
                if next_mode == MOVEMENT_MODE_SENSOR:
                    for result in playback.sensor_enabled(session):
                        report(result)
            elif event.type == pygame_module.KEYDOWN and _direction_for_key(event.key) is not None:
                report(session.move(_direction_for_key(event.key)))
            elif event.type == pygame_module.MOUSEBUTTONDOWN and event.button == 1 and viewport_rect.collidepoint(event.pos):
                target = pixel_to_cell(event.pos, session.state.player.coord, view_center)
                report(session.interact(target))

        for result in playback.advance(session, dt):
            report(result)

        screen.fill(BACKGROUND_COLOR)
        _draw_cells(screen, layer, session, view_center, cell_font, clip_rect=viewport_rect)
        _draw_player(screen, session, view_center, clip_rect=viewport_rect)
        pygame.draw.rect(screen, (64, 68, 84), viewport_rect, 1)
        _draw_hud(screen, session, font, won)
        pygame_module.display.flip()

    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    headless = args.headless or _env_flag_enabled("GRIDMERGE_HEADLESS")
    raise SystemExit(
        run_pygame_viewer(
            rules_path=args.rules_path,
            save_dir=args.save_dir,
            storage_key=args.storage_key,
            movement_mode=args.movement_mode,
            gps_track=args.gps_track,
            headless=headless,
        )
    )


if __name__ == "__main__":
    main()
