"""
手部检测模块
使用 MediaPipe Hands 进行手部关键点检测，输出每只手的 21 个归一化关键点和左右手标签
"""

import cv2
import numpy as np
from typing import Optional, List, Tuple
from dataclasses import dataclass
from enum import IntEnum

from .errors import DetectorUnavailable


class LandmarkIndex(IntEnum):
    """MediaPipe 手部 21 个关键点索引"""
    WRIST = 0

    # 大拇指
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4

    # 食指
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8

    # 中指
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12

    # 无名指
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16

    # 小指
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


# 四指关节定义：(MCP, PIP, 指尖)
FINGER_JOINTS = {
    "index": (5, 6, 8),
    "middle": (9, 10, 12),
    "ring": (13, 14, 16),
    "pinky": (17, 18, 20),
}

# 骨骼连接定义（用于绘制）
HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (0, 9), (9, 10), (10, 11), (11, 12),
    (0, 13), (13, 14), (14, 15), (15, 16),
    (0, 17), (17, 18), (18, 19), (19, 20),
    (5, 9), (9, 13), (13, 17)
]


@dataclass
class HandObservation:
    """单帧单手观测：检测器原样给出的关键点与手性"""
    landmarks: np.ndarray            # 21x3 归一化坐标
    handedness: Optional[str]        # "Left" / "Right"，未知时为 None
    confidence: float = 1.0

    def __post_init__(self):
        self.landmarks = np.asarray(self.landmarks, dtype=float)
        if self.landmarks.ndim == 2 and self.landmarks.shape[1] == 2:
            # 只有 x,y 时补 z=0
            self.landmarks = np.hstack([self.landmarks, np.zeros((len(self.landmarks), 1))])


class HandDetector:
    """
    手部检测器
    封装 MediaPipe Hands；初始化失败时抛出 DetectorUnavailable
    """

    def __init__(
        self,
        max_num_hands: int = 2,
        min_detection_confidence: float = 0.6,
        min_tracking_confidence: float = 0.6,
        model_complexity: int = 0
    ):
        try:
            import mediapipe as mp

            self._hands = mp.solutions.hands.Hands(
                static_image_mode=False,
                max_num_hands=max_num_hands,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
                model_complexity=model_complexity
            )
        except Exception as e:
            raise DetectorUnavailable(f"MediaPipe Hands 初始化失败: {e}") from e

    def detect(self, image: np.ndarray) -> List[HandObservation]:
        """
        检测手部关键点

        Args:
            image: BGR 格式图像

        Returns:
            每只手一个 HandObservation，未检测到手时为空列表
        """
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        results = self._hands.process(image_rgb)

        if not results.multi_hand_landmarks:
            return []

        handedness_list = results.multi_handedness or []
        hands = []
        for i, hand_landmarks in enumerate(results.multi_hand_landmarks):
            label = None
            score = 0.0
            if i < len(handedness_list) and handedness_list[i].classification:
                label = handedness_list[i].classification[0].label
                score = float(handedness_list[i].classification[0].score)

            landmarks = np.array([
                [lm.x, lm.y, lm.z]
                for lm in hand_landmarks.landmark
            ])
            hands.append(HandObservation(landmarks=landmarks, handedness=label, confidence=score))

        return hands

    @staticmethod
    def draw_landmarks(
        image: np.ndarray,
        hands: List[HandObservation],
        color: Tuple[int, int, int] = (0, 255, 255),
        thickness: int = 2
    ) -> np.ndarray:
        """在图像上绘制手部骨骼（原地修改并返回）"""
        h, w = image.shape[:2]

        for hand in hands:
            pts = [(int(x * w), int(y * h)) for x, y in hand.landmarks[:, :2]]
            for start_idx, end_idx in HAND_CONNECTIONS:
                cv2.line(image, pts[start_idx], pts[end_idx], color, thickness)
            for i, point in enumerate(pts):
                # 指尖用绿色
                point_color = (0, 255, 0) if i in (4, 8, 12, 16, 20) else color
                cv2.circle(image, point, 4, point_color, -1)

        return image

    def close(self):
        """释放资源"""
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
