"""
游戏主循环模块
OpenCV 窗口：摄像头预览 + 目标显示 + 按键/鼠标/手势输入，全部在同一线程内派发
"""

import time
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..config.settings import Config, default_config
from .camera import FrameSource
from .detector import HandDetector, HandObservation
from .errors import DetectorUnavailable, RoomError
from .round_controller import RoundEvent, RoundPhase
from .sequence import point_to_pixels
from .session import SessionCoordinator, SessionMode
from .targets import TargetType
from .timing import format_elapsed

WINDOW_NAME = "Oops Too Slow"
POINT_RADIUS = 32

KEY_BACKSPACE = 8
KEY_ENTER = 13
KEY_ESC = 27

# waitKeyEx 返回的特殊键码（X11）
SPECIAL_KEYS = {
    9: "Tab",
    27: "Escape",
    65505: "Shift", 65506: "Shift",
    65507: "Control", 65508: "Control",
    65509: "CapsLock",
    65513: "Alt", 65514: "Alt",
    65515: "Meta", 65516: "Meta",
}
SPECIAL_KEYS.update({65470 + i: f"F{i + 1}" for i in range(12)})


def key_name(code: int) -> Optional[str]:
    """waitKeyEx 键码 -> 按键名；无按键或无法识别时返回 None"""
    if code < 0:
        return None
    if code in SPECIAL_KEYS:
        return SPECIAL_KEYS[code]
    if 32 <= code <= 126:
        return chr(code)
    return None


class KeyRepeatFilter:
    """
    OpenCV 不报告按键重复标志：同一按键在窗口期内再次出现视为按住不放
    """

    def __init__(self, window_ms: float = 600):
        self.window_ms = window_ms
        self._last_key: Optional[str] = None
        self._last_time = 0.0

    def is_repeat(self, key: str, now_ms: float) -> bool:
        repeat = key == self._last_key and now_ms - self._last_time <= self.window_ms
        self._last_key = key
        self._last_time = now_ms
        return repeat


def point_hit(click: Tuple[int, int], center: Tuple[int, int], radius: int = POINT_RADIUS) -> bool:
    dx = click[0] - center[0]
    dy = click[1] - center[1]
    return dx * dx + dy * dy <= radius * radius


class GameApp:
    """
    游戏窗口
    摄像头或检测器不可用时仍可玩按键和点击目标，只显示“摄像头未就绪”
    """

    def __init__(
        self,
        coordinator: SessionCoordinator,
        config: Optional[Config] = None,
        use_camera: bool = True
    ):
        self.coordinator = coordinator
        self.controller = coordinator.controller
        self.config = config or default_config

        self.camera: Optional[FrameSource] = None
        self.detector: Optional[HandDetector] = None
        self.camera_error: Optional[str] = None
        self.banner: Optional[str] = None

        self._repeat_filter = KeyRepeatFilter(self.config.game.key_repeat_window_ms)
        self._pending_click: Optional[Tuple[int, int]] = None
        self._running = False

        if use_camera:
            self._open_camera()
        else:
            self.camera_error = "camera disabled"

        if self.config.debug:
            self.controller.register_callback(self._log_event)

    def _open_camera(self):
        cam = self.config.camera
        det = self.config.detector
        try:
            self.camera = FrameSource(cam.device_id, cam.width, cam.height, cam.fps)
            self.camera.start()
            self.detector = HandDetector(
                max_num_hands=det.max_num_hands,
                min_detection_confidence=det.min_detection_confidence,
                min_tracking_confidence=det.min_tracking_confidence,
                model_complexity=det.model_complexity
            )
        except DetectorUnavailable as e:
            self.camera_error = str(e)
            print(f"[WARN] 手势识别不可用，仅保留按键/点击目标: {e}", flush=True)
            if self.camera:
                self.camera.stop()
            self.camera = None
            self.detector = None

    # ── 输入 ──────────────────────────────────────────────

    def _on_mouse(self, event, x, y, flags, param):
        if event == cv2.EVENT_LBUTTONDOWN:
            self._pending_click = (x, y)

    @property
    def screen(self) -> str:
        if self.controller.phase == RoundPhase.COMPLETED:
            return "results"
        if self.controller.phase == RoundPhase.IDLE:
            return "lobby"
        return "game"

    def handle_key(self, code: int):
        if code == KEY_ESC:
            self._running = False
            return

        if code == KEY_BACKSPACE:
            # 关闭错误提示
            self.banner = None
            return

        screen = self.screen
        if screen == "lobby":
            if code == KEY_ENTER and self.coordinator.is_host:
                self._guard(self.coordinator.start_party)
            return

        if screen == "results":
            if code == KEY_ENTER and self.coordinator.mode == SessionMode.SOLO:
                self.coordinator.restart()
            return

        key = key_name(code)
        if key is None:
            return
        repeat = self._repeat_filter.is_repeat(key, time.monotonic() * 1000)
        self.controller.on_key_down(key, repeat=repeat)

    def handle_click(self, click: Tuple[int, int]):
        state = self.controller.state
        if self.screen != "game" or state.target.type != TargetType.POINT or state.point is None:
            return
        center = point_to_pixels(state.point, self.config.camera.width, self.config.camera.height)
        if point_hit(click, center):
            self.controller.on_pointer_click()

    @staticmethod
    def _log_event(event: RoundEvent):
        target = event.target.label if event.target else "-"
        print(f"[GAME] {event.event_type}: round {event.round_index}/{event.total_rounds} "
              f"target={target} time={format_elapsed(event.elapsed_ms)}", flush=True)

    def _guard(self, operation, *args):
        """房间操作失败只提示，不影响本地状态"""
        try:
            operation(*args)
            self.banner = None
        except RoomError as e:
            self.banner = str(e)
            print(f"[ERROR] {e}", flush=True)

    # ── 绘制 ──────────────────────────────────────────────

    def _render(self, image: Optional[np.ndarray], hands: List[HandObservation]) -> np.ndarray:
        width, height = self.config.camera.width, self.config.camera.height
        if image is None:
            canvas = np.zeros((height, width, 3), dtype=np.uint8)
        else:
            canvas = HandDetector.draw_landmarks(image.copy(), hands)
            if self.config.camera.mirror:
                canvas = cv2.flip(canvas, 1)

        screen = self.screen
        if screen == "lobby":
            self._draw_lobby(canvas)
        elif screen == "results":
            self._draw_results(canvas)
        else:
            self._draw_game(canvas)

        if self.camera_error:
            self._text(canvas, "CAMERA NOT READY (keys & clicks only)", (10, height - 12), 0.5, (0, 0, 255))
        if self.banner:
            self._text(canvas, f"{self.banner} (BACKSPACE to dismiss)", (10, height - 36), 0.6, (0, 165, 255))
        return canvas

    @staticmethod
    def _text(canvas, text, org, scale=0.7, color=(255, 255, 255), thickness=2):
        cv2.putText(canvas, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)

    def _draw_game(self, canvas):
        state = self.controller.state
        elapsed = format_elapsed(self.controller.elapsed_now())
        self._text(canvas, f"ROUND: {state.round_index}/{state.total_rounds} | TIME: {elapsed}", (10, 30))

        target = state.target
        if target.type == TargetType.POINT and state.point is not None:
            center = point_to_pixels(state.point, canvas.shape[1], canvas.shape[0])
            cv2.circle(canvas, center, POINT_RADIUS, (0, 0, 255), -1)
            cv2.circle(canvas, center, POINT_RADIUS // 2, (255, 255, 255), -1)
            self._text(canvas, target.label, (10, 70), 0.8, (0, 255, 255))
            return

        if target.type == TargetType.KEY and target.display.isascii():
            self._text(canvas, target.display, (canvas.shape[1] // 2 - 30, canvas.shape[0] // 2), 3.0, (0, 255, 255), 6)
        self._text(canvas, target.label, (10, 70), 0.9, (0, 255, 255))

        if self.config.debug and target.type == TargetType.GESTURE:
            gate = self.controller.gate
            for i, sighting in enumerate(gate.last_sightings):
                hand = sighting.seen_hand.value if sighting.seen_hand else "?"
                self._text(canvas, f"{hand}: {sighting.gesture.value}", (10, 100 + 24 * i), 0.55, (255, 255, 0), 1)
            self._text(canvas, f"stable {gate.consecutive_matches}/{gate.stable_frames}",
                       (10, 100 + 24 * len(gate.last_sightings)), 0.55, (255, 255, 0), 1)

    def _draw_lobby(self, canvas):
        coordinator = self.coordinator
        room = coordinator.room
        self._text(canvas, f"ROOM CODE: {coordinator.room_code or '-'}", (10, 40), 0.9)
        if room is None:
            return

        self._text(canvas, f"Players ({len(room.players)}/{room.max_players}):", (10, 80))
        for i, entry in enumerate(room.players.values()):
            self._text(canvas, f"- {entry.name}", (20, 110 + 28 * i), 0.6)

        hint = "Press ENTER to start" if coordinator.is_host else "Waiting for host..."
        self._text(canvas, hint, (10, 110 + 28 * len(room.players) + 20), 0.7, (0, 255, 0))

    def _draw_results(self, canvas):
        coordinator = self.coordinator
        self._text(canvas, "FINISHED!", (10, 40), 1.0, (0, 255, 0))
        self._text(canvas, f"Your time: {format_elapsed(coordinator.final_ms or 0)}", (10, 80))
        if coordinator.last_error:
            self._text(canvas, f"Result not submitted: {coordinator.last_error}",
                       (10, canvas.shape[0] - 90), 0.6, (0, 0, 255))

        if coordinator.mode == SessionMode.PARTY:
            for i, row in enumerate(coordinator.leaderboard()):
                line = f"{i + 1}. {row.name}  {format_elapsed(row.total_time_ms)}"
                self._text(canvas, line, (20, 120 + 28 * i), 0.6)
            self._text(canvas, "ESC to quit", (10, canvas.shape[0] - 60), 0.6)
        else:
            self._text(canvas, "ENTER to play again | ESC to quit", (10, canvas.shape[0] - 60), 0.6)

    # ── 主循环 ────────────────────────────────────────────

    def run(self):
        cv2.namedWindow(WINDOW_NAME)
        cv2.setMouseCallback(WINDOW_NAME, self._on_mouse)
        self._running = True

        try:
            while self._running:
                if self.coordinator.store is not None:
                    self.coordinator.store.poll()

                image = self.camera.read() if self.camera else None
                hands: List[HandObservation] = []
                if image is not None and self.detector is not None:
                    hands = self.detector.detect(image)
                    if self.screen == "game":
                        self.controller.on_frame(hands)

                if self._pending_click is not None:
                    click, self._pending_click = self._pending_click, None
                    self.handle_click(click)

                cv2.imshow(WINDOW_NAME, self._render(image, hands))

                code = cv2.waitKeyEx(1 if self.camera else 15)
                if code != -1:
                    self.handle_key(code)
        finally:
            self.close()

    def close(self):
        if self.camera:
            self.camera.stop()
        if self.detector:
            self.detector.close()
        cv2.destroyAllWindows()
