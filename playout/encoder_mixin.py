import subprocess
import threading
import time
from typing import List, Optional, Tuple

from .commands import build_command
from .elements import AspectClass, Element, IdleElement, VideoElement, describe
from .errors import StreamingFailure, StreamOutcome
from .quality import EncoderChoice, QualityProfile, choose_encoder, resolve
from .scope import CancelScope


class EncoderMixin:
    # how often the supervisor checks its scope and the process
    process_poll_interval: float = 0.2

    def _terminate_process(self, proc: subprocess.Popen) -> None:
        """
        Stop an ffmpeg process: SIGTERM, give it 5 s to flush the RTMP
        connection, then SIGKILL.
        """
        if proc.poll() is not None:
            return
        self._append_log("Terminating ffmpeg process")
        try:
            proc.terminate()
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self._append_log("ffmpeg did not terminate in time; killing", level="warning")
            proc.kill()
            proc.wait(timeout=5)
        except OSError as e:
            self._append_log(f"Error while terminating ffmpeg: {e!r}", level="error")

    def _ffmpeg_log_reader_bytes(self, proc: subprocess.Popen) -> None:
        """
        Read ffmpeg stdout (stderr is merged into it) and push lines into our log buffer.
        """
        try:
            out = proc.stdout
            if out is None:
                return
            for raw in iter(out.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    self._append_log(f"[ffmpeg] {line}")
        except (OSError, ValueError) as e:
            # ValueError: pipe closed under us after the process was reaped
            self._append_log(f"ffmpeg log reader error: {e!r}", level="warning")

    def quality_for(self, element: Element) -> Tuple[QualityProfile, EncoderChoice]:
        if isinstance(element, VideoElement):
            profile = resolve(element.aspect, element.tier)
        elif isinstance(element, IdleElement):
            profile = resolve(AspectClass.WIDESCREEN, self.idle_tier)
        else:
            raise TypeError(f"unknown playlist element: {element!r}")
        return profile, choose_encoder(profile)

    def build_element_command(
        self, element: Element, profile: Optional[QualityProfile] = None
    ) -> List[str]:
        """Full ffmpeg argv (binary and global flags included) for one element."""
        if profile is None:
            profile, encoder = self.quality_for(element)
        else:
            encoder = choose_encoder(profile)
        args = build_command(
            element, profile, encoder, self.overlay, self.rtmp_url, now=self._clock()
        )
        return [self.ffmpeg_path, "-hide_banner", "-loglevel", "warning", "-nostdin", *args]

    def stream_element(
        self,
        scope: CancelScope,
        element: Element,
        profile: Optional[QualityProfile] = None,
    ) -> StreamOutcome:
        """
        Encode one element to the RTMP URL and block until it is done.

        Returns COMPLETED on a clean exit and CANCELLED when `scope` was
        cancelled (the process is terminated first). Raises StreamingFailure
        if ffmpeg cannot start, exits non-zero, or outlives the watchdog.
        No retries: the caller moves on to the next element.
        """
        if scope.cancelled:
            return StreamOutcome.CANCELLED

        cmd = self.build_element_command(element, profile)
        self._append_log("Launching ffmpeg: " + " ".join(map(str, cmd)))
        try:
            proc = self._launcher(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
            )
        except FileNotFoundError:
            raise StreamingFailure(f"ffmpeg executable not found: {self.ffmpeg_path}")
        except OSError as e:
            raise StreamingFailure(f"error starting ffmpeg: {e!r}")

        reader: Optional[threading.Thread] = None
        if proc.stdout is not None:
            reader = threading.Thread(
                target=self._ffmpeg_log_reader_bytes, args=(proc,), daemon=True
            )
            reader.start()

        started = time.monotonic()
        try:
            while True:
                if scope.wait(self.process_poll_interval):
                    self._terminate_process(proc)
                    self._append_log(f"Streaming interrupted: {describe(element)}")
                    return StreamOutcome.CANCELLED
                ret = proc.poll()
                if ret is not None:
                    break
                limit = self.max_element_seconds
                if limit is not None and time.monotonic() - started > limit:
                    self._terminate_process(proc)
                    raise StreamingFailure(
                        f"watchdog: {describe(element)} still streaming after {limit:.0f}s"
                    )
        finally:
            if reader is not None:
                reader.join(timeout=1.0)

        if ret != 0:
            raise StreamingFailure(f"ffmpeg exited with code {ret} for {describe(element)}")
        self._append_log(f"Streaming completed: {describe(element)}")
        return StreamOutcome.COMPLETED
