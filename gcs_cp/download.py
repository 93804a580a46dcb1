from __future__ import annotations
from typing import Callable, List, Optional
from dataclasses import dataclass, field
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor, as_completed
from queue import Queue, Empty
import os
import tempfile
import threading

from botocore.exceptions import BotoCoreError, ClientError
from tqdm import tqdm

from .core import list_objects
from .errors import DownloadError, get_logger
from .utils import SourceSpec, Deadline, parse_gcs_uri, map_local_path, ensure_dir

DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 1024 * 1024

log = get_logger(__name__)

Reporter = Callable[[str], None]


@dataclass(frozen=True)
class TransferConfig:
    source: SourceSpec
    destination: Path
    concurrent: bool = False
    progress: bool = False


@dataclass(frozen=True)
class DownloadTask:
    key: str


@dataclass
class TransferResult:
    count: int
    concurrent: bool
    workers: int
    paths: List[Path] = field(default_factory=list)


def build_config(
    uri: str,
    destination: str | Path,
    concurrent: bool = False,
    progress: bool = False,
) -> TransferConfig:
    return TransferConfig(
        source=parse_gcs_uri(uri),
        destination=Path(destination),
        concurrent=concurrent,
        progress=progress,
    )


def download_object(
    s3_client,
    bucket: str,
    key: str,
    dst_path: str | Path,
    timeout: float = DOWNLOAD_TIMEOUT,
    on_copied: Optional[Callable[[str, Path], None]] = None,
) -> int:
    """
    Stream one object into dst_path and return the number of bytes written.

    Bytes go to a temporary sibling first and are renamed into place only once
    the whole body has been copied, so a failed download never leaves a
    truncated file under the final name. The parent directory must exist.
    """
    dst = Path(dst_path)
    deadline = Deadline(timeout)
    try:
        body = s3_client.get_object(Bucket=bucket, Key=key)["Body"]
    except (ClientError, BotoCoreError) as e:
        raise DownloadError(key, "open_reader", e) from e
    try:
        deadline.check(f"opening {key}")
    except TimeoutError as e:
        body.close()
        raise DownloadError(key, "open_reader", e) from e

    try:
        try:
            tmp = tempfile.NamedTemporaryFile(
                dir=dst.parent, prefix=f".{dst.name}.", suffix=".part", delete=False
            )
        except OSError as e:
            raise DownloadError(key, "create_file", e) from e

        copied = 0
        try:
            with tmp:
                for chunk in body.iter_chunks(CHUNK_SIZE):
                    tmp.write(chunk)
                    copied += len(chunk)
                    deadline.check(f"copying {key}")
            os.replace(tmp.name, dst)
        except BaseException as e:
            Path(tmp.name).unlink(missing_ok=True)
            if isinstance(e, (OSError, BotoCoreError)):  # TimeoutError is an OSError
                raise DownloadError(key, "copy", e) from e
            raise
    finally:
        body.close()

    log.debug("Copied %d bytes: %s -> %s", copied, key, dst)
    if on_copied:
        on_copied(key, dst)
    return copied


def worker_count(n_objects: int) -> int:
    """Never spawn more workers than there are objects to fetch."""
    return max(1, min(os.cpu_count() or 1, n_objects))


def _transfer_one(s3_client, config: TransferConfig, key: str, on_copied) -> Path:
    dst = map_local_path(config.destination, key)
    if key.endswith("/"):
        # folder placeholder object; nothing to stream
        ensure_dir(dst)
        on_copied(key, dst)
        return dst
    download_object(s3_client, config.source.bucket, key, dst, on_copied=on_copied)
    return dst


def _run_sequential(s3_client, config: TransferConfig, keys: List[str], on_copied) -> List[Path]:
    return [_transfer_one(s3_client, config, key, on_copied) for key in keys]


def _run_concurrent(
    s3_client,
    config: TransferConfig,
    keys: List[str],
    on_copied,
    workers: int,
) -> List[Path]:
    tasks: Queue[DownloadTask] = Queue(maxsize=len(keys))
    for key in keys:
        tasks.put_nowait(DownloadTask(key))
    cancel = threading.Event()

    def _worker() -> List[Path]:
        done: List[Path] = []
        while not cancel.is_set():
            try:
                task = tasks.get_nowait()
            except Empty:
                break
            try:
                done.append(_transfer_one(s3_client, config, task.key, on_copied))
            except Exception:
                cancel.set()
                raise
        return done

    paths: List[Path] = []
    first_error: Optional[BaseException] = None
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gcs-cp") as ex:
        futs = [ex.submit(_worker) for _ in range(workers)]
        for f in as_completed(futs):
            try:
                paths.extend(f.result())
            except Exception as e:
                if first_error is None:
                    first_error = e
                else:
                    log.debug("Suppressed error from sibling worker: %s", e)

    if first_error is not None:
        log.debug("Worker pool stopped early; %d of %d objects written", len(paths), len(keys))
        raise first_error
    return paths


def run_transfer(
    s3_client,
    config: TransferConfig,
    keys: List[str],
    report: Optional[Reporter] = None,
) -> TransferResult:
    """
    Download every key under config.destination, one at a time or through a
    worker pool. The first failure stops the run and is raised to the caller.
    """
    bar = tqdm(total=len(keys), desc="Download", unit="obj") if config.progress and keys else None

    def _copied(key: str, path: Path) -> None:
        line = f"{key} => {path}"
        if bar:
            bar.write(line)
            bar.update(1)
        elif report:
            report(line)

    try:
        if config.concurrent:
            workers = worker_count(len(keys))
            log.debug("Starting %d workers for %d objects", workers, len(keys))
            paths = _run_concurrent(s3_client, config, keys, _copied, workers)
        else:
            workers = 1
            paths = _run_sequential(s3_client, config, keys, _copied)
    finally:
        if bar:
            bar.close()

    return TransferResult(count=len(keys), concurrent=config.concurrent, workers=workers, paths=paths)


def mirror(s3_client, config: TransferConfig, report: Optional[Reporter] = None) -> TransferResult:
    src = config.source
    keys = list_objects(s3_client, src.bucket, prefix=src.prefix, uri=src.raw_uri)
    log.info("Matched %d objects in %s", len(keys), src.raw_uri)
    return run_transfer(s3_client, config, keys, report=report)
