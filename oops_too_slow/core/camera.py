"""
摄像头采集模块
同步读帧：上一帧处理完之前不会交付下一帧
"""

import cv2
import numpy as np
from typing import Optional

from .errors import DetectorUnavailable


class FrameSource:
    """OpenCV 摄像头帧来源"""

    def __init__(
        self,
        device_id: int = 0,
        width: int = 640,
        height: int = 480,
        fps: int = 30
    ):
        self.device_id = device_id
        self.width = width
        self.height = height
        self.fps = fps

        self._cap: Optional[cv2.VideoCapture] = None

    def start(self):
        """打开摄像头，失败时抛出 DetectorUnavailable"""
        if self._cap is not None:
            return

        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            raise DetectorUnavailable(f"无法打开摄像头 {self.device_id}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        cap.set(cv2.CAP_PROP_FPS, self.fps)
        self._cap = cap

        print(f"[INFO] 摄像头已启动: {int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
              f"{int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}", flush=True)

    def read(self) -> Optional[np.ndarray]:
        """
        读取一帧未翻转的 BGR 图像，失败返回 None
        检测器按原始画面给出手性，镜像只用于显示
        """
        if self._cap is None:
            return None

        ok, image = self._cap.read()
        if not ok:
            return None
        return cv2.resize(image, (self.width, self.height))

    def stop(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            print("[INFO] 摄像头已停止", flush=True)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
