# cartlink/dispatch/launcher.py
from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from concurrent.futures import Future
from typing import Optional, Sequence

from cartlink.core.errors import DispatchError
from cartlink.interfaces.dispatcher import DispatchResult


class ProcessLauncher:
    """
    Default ActionDispatcher: starts the cartridge's executable as a detached
    child process.

    launch() returns immediately; the future resolves once the spawn either
    succeeded or failed. The child is never waited on.
    """

    def __init__(
        self,
        *,
        extra_args: Sequence[str] = (),
        cwd_from_path: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self._extra_args = tuple(extra_args)
        self._cwd_from_path = cwd_from_path
        self._log = logger or logging.getLogger(__name__)

    def launch(self, path: str) -> "Future[DispatchResult]":
        if not path or not path.strip():
            raise DispatchError("Cannot launch an empty path.")

        fut: "Future[DispatchResult]" = Future()
        t = threading.Thread(
            target=self._spawn,
            args=(path, fut),
            name="cartlink-launch",
            daemon=True,
        )
        t.start()
        return fut

    def _spawn(self, path: str, fut: "Future[DispatchResult]") -> None:
        self._log.info("LAUNCH path=%s", path)
        cwd = None
        if self._cwd_from_path:
            parent = Path(path).parent
            cwd = str(parent) if parent.is_dir() else None

        try:
            subprocess.Popen(
                [path, *self._extra_args],
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            self._log.warning("LAUNCH_FAILED path=%s err=%s", path, e)
            fut.set_result(DispatchResult(path=path, ok=False, error=str(e)))
            return

        self._log.info("LAUNCH_OK path=%s", path)
        fut.set_result(DispatchResult(path=path, ok=True))
