"""Rendering of the tracked frame with status text for display."""

from __future__ import annotations

import threading
from enum import IntEnum

import numpy as np
from PIL import Image, ImageDraw, ImageFont

_GREEN = (0, 255, 0)
_BLUE = (0, 0, 255)
_WHITE = (255, 255, 255)


class TrackingState(IntEnum):
    SYSTEM_NOT_READY = -1
    NO_IMAGES_YET = 0
    NOT_INITIALIZED = 1
    OK = 2
    LOST = 3


def status_text(state, only_tracking=False, keyframes=0, map_points=0, tracked=0, tracked_vo=0) -> str:
    """Return the status line shown under the frame for a tracking state."""
    state = TrackingState(state)
    if state is TrackingState.NO_IMAGES_YET:
        return " WAITING FOR IMAGES"
    if state is TrackingState.NOT_INITIALIZED:
        return " TRYING TO INITIALIZE "
    if state is TrackingState.OK:
        text = "LOCALIZATION | " if only_tracking else "SLAM MODE |  "
        text += f"KFs: {keyframes}, MPs: {map_points}, Matches: {tracked}"
        if tracked_vo > 0:
            text += f", + VO matches: {tracked_vo}"
        return text
    if state is TrackingState.LOST:
        return " TRACK LOST. TRYING TO RELOCALIZE "
    return " LOADING ORB VOCABULARY. PLEASE WAIT..."


def _to_color(image: np.ndarray) -> np.ndarray:
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)
    if image.ndim == 2:
        return np.stack([image] * 3, axis=-1)
    if image.shape[2] == 1:
        return np.repeat(image, 3, axis=2)
    return np.ascontiguousarray(image[:, :, :3])


class FrameDrawer:
    """Keeps the latest tracking result and draws it as an RGB image.

    ``map_`` must provide ``keyframes_in_map()`` and ``map_points_in_map()``;
    they are queried only while tracking is OK.
    """

    def __init__(self, map_):
        self._map = map_
        self._lock = threading.Lock()
        self._state = TrackingState.SYSTEM_NOT_READY
        self._image = np.zeros((480, 640, 3), dtype=np.uint8)
        self._current_keys: list = []
        self._initial_keys: list = []
        self._initial_matches: list[int] = []
        self._map_flags: list[bool] = []
        self._vo_flags: list[bool] = []
        self._only_tracking = False
        self.tracked = 0
        self.tracked_vo = 0

    def update(self, image, state, keys, only_tracking=False, initial_keys=(),
               initial_matches=(), map_flags=None, vo_flags=None) -> None:
        """Store the latest frame and what the tracker made of it."""
        state = TrackingState(state)
        keys = list(keys)
        n = len(keys)
        map_list = [False] * n
        vo_list = [False] * n
        if state is TrackingState.OK:
            if map_flags is not None:
                map_list = [bool(flag) for flag in map_flags]
            if vo_flags is not None:
                vo_list = [bool(flag) for flag in vo_flags]
            if len(map_list) != n or len(vo_list) != n:
                raise ValueError("map and VO flags must have one entry per keypoint")
        with self._lock:
            self._image = np.array(image, copy=True)
            self._current_keys = keys
            self._only_tracking = bool(only_tracking)
            self._map_flags = map_list
            self._vo_flags = vo_list
            if state is TrackingState.NOT_INITIALIZED:
                self._initial_keys = list(initial_keys)
                self._initial_matches = [int(m) for m in initial_matches]
            self._state = state

    def draw_frame(self) -> np.ndarray:
        """Return the current image with features drawn and a status strip below."""
        with self._lock:
            state = self._state
            if self._state is TrackingState.SYSTEM_NOT_READY:
                self._state = TrackingState.NO_IMAGES_YET
            image = self._image.copy()
            keys = list(self._current_keys)
            initial_keys = list(self._initial_keys)
            matches = list(self._initial_matches)
            map_flags = list(self._map_flags)
            vo_flags = list(self._vo_flags)

        canvas = Image.fromarray(_to_color(image))
        draw = ImageDraw.Draw(canvas)

        if state is TrackingState.NOT_INITIALIZED:
            for initial, match in zip(initial_keys, matches):
                if match >= 0:
                    draw.line([initial.pt, keys[match].pt], fill=_GREEN)
        elif state is TrackingState.OK:
            tracked = tracked_vo = 0
            r = 5
            for key, on_map, on_vo in zip(keys, map_flags, vo_flags):
                if not (on_map or on_vo):
                    continue
                color = _GREEN if on_map else _BLUE
                draw.rectangle([key.x - r, key.y - r, key.x + r, key.y + r], outline=color)
                draw.ellipse([key.x - 2, key.y - 2, key.x + 2, key.y + 2], fill=color)
                if on_map:
                    tracked += 1
                else:
                    tracked_vo += 1
            self.tracked = tracked
            self.tracked_vo = tracked_vo

        return self._with_text_info(np.asarray(canvas), state)

    def _with_text_info(self, image: np.ndarray, state: TrackingState) -> np.ndarray:
        if state is TrackingState.OK:
            text = status_text(state, self._only_tracking, self._map.keyframes_in_map(),
                               self._map.map_points_in_map(), self.tracked, self.tracked_vo)
        else:
            text = status_text(state)
        font = ImageFont.load_default()
        probe = ImageDraw.Draw(Image.new("RGB", (1, 1)))
        left, top, right, bottom = probe.textbbox((0, 0), text, font=font)
        text_height = bottom - top
        rows, cols = image.shape[:2]
        out = np.zeros((rows + text_height + 10, cols, 3), dtype=np.uint8)
        out[:rows] = image
        strip = Image.fromarray(out)
        ImageDraw.Draw(strip).text((5, rows + 5 - top), text, fill=_WHITE, font=font)
        return np.asarray(strip).copy()