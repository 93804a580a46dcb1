from __future__ import annotations
from gcs_cp.core import get_gcs_client
from gcs_cp.download import build_config, mirror

if __name__ == "__main__":
    s3 = get_gcs_client()
    cfg = build_config("gs://my-bucket/images", "downloads", concurrent=True, progress=True)
    res = mirror(s3, cfg, report=print)
    print("Downloaded:", res.count, "Workers:", res.workers)
