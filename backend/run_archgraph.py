import argparse
import json
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app.config import AppConfig  # noqa: E402
from backend.app.dependencies import (  # noqa: E402
    get_episodic_store,
    get_model_service,
    get_result_cache,
)
from backend.app.loaders.snapshot_loader import save_episodes  # noqa: E402

from archgraph.errors import InvalidMutation, PlanningError  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run modelling requests against the stored architecture graph."
    )
    parser.add_argument("requests", nargs="+", help="natural-language requests, run in order")
    parser.add_argument(
        "--any-version",
        action="store_true",
        help="allow cached answers produced under an earlier graph version",
    )
    parser.add_argument("--commit", action="store_true", help="commit after the last request")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    logger = logging.getLogger("archgraph.run")
    start = time.perf_counter()
    config = AppConfig()
    service = get_model_service()

    for index, request in enumerate(args.requests, start=1):
        label = f"request-{index}"
        try:
            result = service.run(
                request=request,
                version_sensitive=not args.any_version,
                origin="cli",
            )
        except (InvalidMutation, PlanningError) as exc:
            logger.error("[%s] %s", label, exc)
            continue

        logger.info("[%s] result ready in %.2fs", label, time.perf_counter() - start)
        logger.info(json.dumps(result, indent=2, default=str))

        validation = result.get("validation") or {}
        if validation.get("hard_failures"):
            logger.warning(
                "[%s] applied changes break %d hard rule(s); consider a restore",
                label,
                validation["hard_failures"],
            )

    if args.commit:
        logger.info("committed version %d", service.commit(origin="cli"))

    cache = get_result_cache()
    if cache is not None:
        logger.info("cache %s", cache.stats())
    episodic = get_episodic_store()
    logger.info("episodic memory %s", episodic.stats())
    save_episodes(episodic=episodic, path=Path(config.episodes_path))


if __name__ == "__main__":
    main()
