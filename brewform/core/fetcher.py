"""制品拉取与完整性校验

职责:
- 下载选中变体的制品到 cache_dir/<name>/<version>/<file>
- 网络错误按配置重试；HTTP 4xx 视为地址不可达，不重试
- sha256 校验失败直接删除文件并抛 IntegrityMismatchError，永不降级为警告
"""

from __future__ import annotations

import logging
import shutil
import time
import urllib.error
import urllib.request
from pathlib import Path

from brewform.core.exceptions import DownloadError, IntegrityMismatchError
from brewform.core.models import PackageDescriptor, SourceVariant
from brewform.utils.hashing import digests_equal, sha256_file
from brewform.utils.net import filename_from_url, validate_url_scheme

logger = logging.getLogger(__name__)

USER_AGENT = "brewform"
RETRY_DELAY = 1.0  # 秒，按尝试次数线性递增


def download_file(url: str, dest: Path, timeout: int) -> None:
    """下载 url 到 dest（先写 .part 再改名，避免残留半个文件）"""
    part = dest.with_name(dest.name + ".part")
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(part, "wb") as f:  # nosec B310
            shutil.copyfileobj(resp, f)
        part.replace(dest)
    finally:
        part.unlink(missing_ok=True)


class ArtifactFetcher:
    """制品拉取器 - 缓存优先 + 远程下载 + sha256 校验"""

    def __init__(
        self,
        cache_dir: str = "",
        *,
        timeout: int | None = None,
        retries: int | None = None,
    ) -> None:
        if not cache_dir or timeout is None or retries is None:
            from brewform.core.config import get_config
            cfg = get_config()
            cache_dir = cache_dir or cfg.cache_dir
            timeout = cfg.download_timeout if timeout is None else timeout
            retries = cfg.download_retries if retries is None else retries
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.retries = retries

    def artifact_path(self, descriptor: PackageDescriptor, variant: SourceVariant) -> Path:
        return (
            self.cache_dir / descriptor.name / descriptor.version
            / filename_from_url(variant.url)
        )

    def fetch(self, descriptor: PackageDescriptor, variant: SourceVariant) -> Path:
        """下载并校验，返回已校验的本地制品路径"""
        path = self.download(descriptor, variant)
        self.verify(path, variant.sha256)
        return path

    def download(self, descriptor: PackageDescriptor, variant: SourceVariant) -> Path:
        """下载制品（不做最终校验）

        缓存中已有文件时先核对哈希：一致直接复用，不一致丢弃后重新下载。
        """
        validate_url_scheme(variant.url, context=f"download {descriptor.name}")
        dest = self.artifact_path(descriptor, variant)
        dest.parent.mkdir(parents=True, exist_ok=True)

        if dest.exists():
            if digests_equal(variant.sha256, sha256_file(dest)):
                logger.info("缓存命中: %s", dest)
                return dest
            logger.warning("缓存文件校验和不符，重新下载: %s", dest)
            dest.unlink()

        self._download_with_retry(variant.url, dest)
        return dest

    def _download_with_retry(self, url: str, dest: Path) -> None:
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            logger.info("下载 (%d/%d): %s", attempt, attempts, url)
            try:
                download_file(url, dest, self.timeout)
            except urllib.error.HTTPError as e:
                if e.code < 500:
                    raise DownloadError(f"地址不可达: {url} - HTTP {e.code}") from e
                err: Exception = e
            except (urllib.error.URLError, OSError) as e:
                err = e
            else:
                logger.info("已保存: %s", dest)
                return
            if attempt == attempts:
                raise DownloadError(f"下载失败: {url} - {err}") from err
            logger.warning("下载失败，准备重试: %s (%s)", url, err)
            time.sleep(RETRY_DELAY * attempt)

    def verify(self, path: Path, expected: str) -> str:
        """校验文件 sha256，失败删除文件并抛 IntegrityMismatchError"""
        actual = sha256_file(path)
        if not digests_equal(expected, actual):
            path.unlink(missing_ok=True)
            logger.error("校验和不匹配，已删除: %s", path)
            raise IntegrityMismatchError(str(path), expected, actual)
        logger.info("校验和通过: %s", path.name)
        return actual
