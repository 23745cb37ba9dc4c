"""Push-key generation for store-assigned record ids.

Keys are 20 characters: 8 encode the creation time in milliseconds, 12 are
random. They sort chronologically as plain strings, and keys created in the
same millisecond increment the random part so ordering still holds.
"""

from __future__ import annotations

import secrets
import time

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


class PushKeyGenerator:
    def __init__(self) -> None:
        self._last_ms = 0
        self._last_rand = [0] * 12

    def __call__(self) -> str:
        now = int(time.time() * 1000)
        duplicate = now == self._last_ms
        self._last_ms = now

        time_chars = []
        for _ in range(8):
            time_chars.append(PUSH_CHARS[now % 64])
            now //= 64
        key = "".join(reversed(time_chars))

        if not duplicate:
            self._last_rand = [secrets.randbelow(64) for _ in range(12)]
        else:
            i = 11
            while i >= 0 and self._last_rand[i] == 63:
                self._last_rand[i] = 0
                i -= 1
            if i >= 0:
                self._last_rand[i] += 1

        return key + "".join(PUSH_CHARS[n] for n in self._last_rand)


generate_push_key = PushKeyGenerator()
