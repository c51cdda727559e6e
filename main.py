import argparse
import os

from stem_cell_recovery.config import Config
from stem_cell_recovery.pipeline import PipelineRunner
from stem_cell_recovery.synthetic import make_synthetic_cohort


def main() -> None:
    """Run the full poor-recovery classification report."""
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--config", default="config/default.yaml", help="Path to YAML config")
    parser.add_argument(
        "--synthetic",
        type=int,
        default=None,
        metavar="N",
        help="Write a synthetic cohort of N records to the configured data path first",
    )
    args = parser.parse_args()

    cfg = Config.from_yaml(args.config)
    if args.synthetic:
        path = cfg.data["path"]
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        make_synthetic_cohort(
            n_records=args.synthetic, random_state=cfg.validation.get("random_state", 42)
        ).to_csv(path, index=False)

    runner = PipelineRunner(config=cfg)
    runner.run()


if __name__ == "__main__":
    main()
