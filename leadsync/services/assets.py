"""
Mesh asset retrieval — materialize a project's four scene files under MEDIA_DIR.

Files already on disk are reused without a network call. Missing files are
downloaded concurrently, and each download fails independently: the bundle
records what arrived and what didn't.
"""
import concurrent.futures
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List

from leadsync.errors import AssetWriteError, AssetRetrievalError, LeadSyncError

logger = logging.getLogger('services.assets')

# (kind, extension) in presentation order; files are named scene.<ext>
ASSET_FILES = [
    ('image', 'jpg'),
    ('geometry', 'obj'),
    ('points', 'ply'),
    ('material', 'mtl'),
]


def asset_filename(ext):
    return f'scene.{ext}'


def media_url(project_id, filename):
    return f'/media/{project_id}/{filename}'


@dataclass
class AssetBundle:
    """Local paths and URLs for one project's mesh files, keyed by extension."""
    project_id: int
    paths: Dict[str, str] = field(default_factory=dict)
    urls: Dict[str, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    downloaded: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, ext, path):
        with self._lock:
            self.paths[ext] = path
            self.urls[ext] = media_url(self.project_id, asset_filename(ext))

    def fail(self, message):
        with self._lock:
            self.errors.append(message)

    @property
    def success_count(self):
        with self._lock:
            return len(self.paths)

    def to_dict(self):
        with self._lock:
            result = {'project_id': self.project_id}
            for _, ext in ASSET_FILES:
                result[f'{ext}_path'] = self.paths.get(ext, '')
                result[f'{ext}_url'] = self.urls.get(ext, '')
            result['downloaded'] = self.downloaded
            result['errors'] = list(self.errors)
            return result


class AssetFetcher:
    """
    Args:
        client:      LightFusionClient (asset_url + download_asset)
        media_dir:   root directory served under /media
        max_workers: concurrent downloads per fetch
    """

    def __init__(self, client, media_dir, max_workers=4):
        self.client = client
        self.media_dir = media_dir
        self.max_workers = max_workers

    def project_dir(self, project_id):
        return os.path.join(self.media_dir, str(project_id))

    def fetch(self, project_id):
        """
        Ensure every mesh file for project_id is on disk; return the bundle.

        Raises AssetWriteError if the project directory can't be created, and
        AssetRetrievalError (carrying the bundle) when nothing could be
        materialized.
        """
        directory = self.project_dir(project_id)
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise AssetWriteError(f"failed to create media directory {directory}: {e}") from e

        bundle = AssetBundle(project_id=project_id)
        missing = []
        for kind, ext in ASSET_FILES:
            path = os.path.join(directory, asset_filename(ext))
            if os.path.exists(path):
                bundle.record(ext, path)
            else:
                missing.append((kind, ext, path))

        if missing:
            logger.info(
                "Fetching %d mesh file(s) for project %s", len(missing), project_id,
                extra={'project_id': project_id},
            )
            workers = max(1, min(self.max_workers, len(missing)))
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self._fetch_one, bundle, project_id, kind, ext, path): (kind, ext)
                    for kind, ext, path in missing
                }
                for future in concurrent.futures.as_completed(futures):
                    error = future.exception()
                    if error is None:
                        continue
                    kind, ext = futures[future]
                    filename = asset_filename(ext)
                    logger.error(
                        "Unexpected error downloading %s (%s) for project %s: %r",
                        filename, kind, project_id, error,
                        extra={'project_id': project_id}, exc_info=error,
                    )
                    bundle.fail(f'{kind} ({filename}): {error!r}')

        bundle.downloaded = bundle.success_count > 0
        if not bundle.downloaded:
            logger.error(
                "No mesh files retrieved for project %s: %s", project_id, bundle.errors,
                extra={'project_id': project_id},
            )
            raise AssetRetrievalError(bundle)
        return bundle

    def _fetch_one(self, bundle, project_id, kind, ext, path):
        filename = asset_filename(ext)
        url = self.client.asset_url(project_id, filename)
        try:
            self.client.download_asset(url, path)
        except LeadSyncError as e:
            logger.warning(
                "Failed to download %s (%s) for project %s: %s", filename, kind, project_id, e,
                extra={'project_id': project_id},
            )
            bundle.fail(f'{kind} ({filename}): {e}')
            return
        bundle.record(ext, path)
