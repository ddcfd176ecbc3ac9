"""Camera capture module using OpenCV."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path


@dataclass
class CameraCapture:
    camera_index: int
    image_path: str
    captured_at: str  # ISO8601
    image: bytes = field(default=b"", repr=False)
    mime_type: str = "image/jpeg"


class ProductCamera:
    """Capture product and price tag photos from an attached camera."""

    def __init__(self, camera_index: int = 0, save_dir: str = "/tmp/mubu") -> None:
        self._camera_index = camera_index
        self._save_dir = Path(save_dir)
        self._save_dir.mkdir(parents=True, exist_ok=True)

    def capture(self, label: str = "product") -> CameraCapture:
        """Capture a single JPEG frame and keep a copy on disk."""
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        cap = cv2.VideoCapture(self._camera_index)
        if not cap.isOpened():
            raise RuntimeError(
                f"카메라 {self._camera_index} 을(를) 열 수 없습니다. "
                f"연결을 확인하세요."
            )

        try:
            ret, frame = cap.read()
            if not ret or frame is None:
                raise RuntimeError(
                    f"카메라 {self._camera_index} 에서 프레임을 가져오지 못했습니다."
                )

            ok, buf = cv2.imencode(".jpg", frame)
            if not ok:
                raise RuntimeError("JPEG 인코딩에 실패했습니다.")
            data = buf.tobytes()

            now = datetime.now(timezone.utc)
            timestamp = now.strftime("%Y%m%d_%H%M%S")
            filepath = self._save_dir / f"{label}_cam{self._camera_index}_{timestamp}.jpg"
            filepath.write_bytes(data)

            return CameraCapture(
                camera_index=self._camera_index,
                image_path=str(filepath),
                captured_at=now.isoformat(),
                image=data,
            )
        finally:
            cap.release()

    @staticmethod
    def list_cameras(max_check: int = 10) -> list[int]:
        """List available camera indices by probing."""
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        available: list[int] = []
        for i in range(max_check):
            cap = cv2.VideoCapture(i)
            if cap.isOpened():
                available.append(i)
                cap.release()
        return available
