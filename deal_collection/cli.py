import argparse
import logging
from pathlib import Path

from .config import PipelineConfig
from .exceptions import PipelineError
from .pipeline import stages

logger = logging.getLogger(__name__)

def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

def _banner(title: str):
    print(f"\n{'='*60}")
    print(title)
    print(f"{'='*60}")

def _reviewed_path(input_path: Path) -> Path:
    return input_path.with_name(f"{input_path.stem}_reviewed{input_path.suffix or '.csv'}")

def _default_cap(input_path: Path, config: PipelineConfig) -> int:
    return config.discovered_cap if 'discovered' in input_path.name else config.homepage_cap

def run_stage(args, config: PipelineConfig) -> int:
    """Dispatch one parsed subcommand. Returns the process exit code."""
    data = config.data_path
    dataset = Path(args.dataset or config.dataset_path)

    if args.stage == 'make-targets':
        output = Path(args.output or data('targets.csv'))
        count = stages.make_targets(dataset, output, config)
        _banner("TARGET REGISTRY")
        print(f"Targets written: {count}")
        print(f"Saved to: {output}")

    elif args.stage == 'filter-chains':
        output = Path(args.output or dataset.with_name('deals.clean.json'))
        removed_path = Path(args.removed or dataset.with_name('deals.removed_chains.json'))
        kept, removed = stages.filter_chains(dataset, output, removed_path)
        _banner("CHAIN FILTER")
        print(f"Kept: {len(kept)}")
        print(f"Removed: {len(removed)}")
        for name in removed:
            print(f"  - {name}")
        print(f"Clean dataset: {output}")
        print(f"Removed backup: {removed_path}")

    elif args.stage == 'check-robots':
        output = Path(args.output or data('targets_checked.csv'))
        log_path = Path(args.log or output.with_suffix('.log'))
        counts = stages.check_robots(args.input or data('targets.csv'), output, log_path, config)
        _banner("ROBOTS CHECK")
        print(f"Allowed: {counts['true']}")
        print(f"Disallowed: {counts['false']}")
        print(f"Unknown: {counts['']}")
        print(f"Saved to: {output} (log: {log_path})")

    elif args.stage == 'scrape-sites':
        output = Path(args.output or data('scraped_deals.csv'))
        log_path = Path(args.log or output.with_suffix('.log'))
        count = stages.scrape_sites(args.input or data('targets_checked.csv'), output, log_path,
                                    config, resume=args.resume)
        _banner("HOMEPAGE PASS")
        print(f"Candidate rows written: {count}")
        print(f"Saved to: {output} (log: {log_path})")

    elif args.stage == 'review':
        input_path = Path(args.input or data('scraped_deals.csv'))
        output = Path(args.output or _reviewed_path(input_path))
        cap = args.cap or _default_cap(input_path, config)
        count = stages.review(input_path, output, cap, require_consent=not args.no_consent_check, config=config)
        _banner("REVIEW")
        print(f"Reviewed rows kept: {count} (cap {cap} per venue)")
        print(f"Saved to: {output}")

    elif args.stage == 'discover-links':
        output = Path(args.output or data('discovered_links.csv'))
        log_path = Path(args.log or output.with_suffix('.log'))
        count = stages.discover_links(args.input or data('targets_checked.csv'), output, log_path,
                                      config, resume=args.resume)
        _banner("LINK DISCOVERY")
        print(f"Links written: {count}")
        print(f"Saved to: {output} (log: {log_path})")

    elif args.stage == 'scrape-discovered':
        output = Path(args.output or data('discovered_deals.csv'))
        log_path = Path(args.log or output.with_suffix('.log'))
        count = stages.scrape_discovered(args.input or data('discovered_links.csv'), output, log_path,
                                         config, include_structured=not args.no_structured,
                                         resume=args.resume)
        _banner("DISCOVERED PAGES PASS")
        print(f"Candidate rows written: {count}")
        print(f"Saved to: {output} (log: {log_path})")

    elif args.stage == 'merge':
        inputs = args.input or [data('scraped_deals_reviewed.csv')]
        report = stages.merge(inputs, dataset)
        _banner("MERGE")
        print(f"Added/merged {report.merged} deals ({report.added} new)")
        if report.skipped:
            print(f"Skipped rows ({len(report.skipped)}):")
            for label in report.skipped:
                print(f"  - {label}")
        if report.unmatched:
            print(f"Unmatched venues ({len(report.unmatched)}):")
            for name in report.unmatched:
                print(f"  - {name}")
        print(f"Dataset updated: {dataset}")

    elif args.stage == 'report-missing':
        output = Path(args.output or data('missing_deals_report.csv'))
        targets = Path(args.targets or data('targets_checked.csv'))
        count = stages.report_missing(dataset, targets, output, config)
        _banner("MISSING DEALS REPORT")
        print(f"Venues without deals: {count}")
        print(f"Saved to: {output}")

    return 0

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--dataset', type=str, help='Canonical dataset JSON (defaults to public/data/deals.json)')
    common.add_argument('--output', '-o', type=str, help='Output file for this stage')
    common.add_argument('--workers', '-w', type=int, help='Concurrent venues/links (default 4)')
    common.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    parser = argparse.ArgumentParser(
        prog='python -m deal_collection',
        description="Collect local restaurant and bar deals into the canonical venue dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Build crawl targets and resolve robots.txt consent
  python -m deal_collection make-targets
  python -m deal_collection check-robots

  # Homepage pass, then review (cap 5 per venue) and merge
  python -m deal_collection scrape-sites
  python -m deal_collection review --input data/scraped_deals.csv
  python -m deal_collection merge --input data/scraped_deals_reviewed.csv

  # Backfill venues that still have no deals
  python -m deal_collection report-missing
  python -m deal_collection discover-links --input data/missing_deals_report.csv
  python -m deal_collection scrape-discovered
  python -m deal_collection review --input data/discovered_deals.csv --cap 6
  python -m deal_collection merge --input data/discovered_deals_reviewed.csv
        """
    )
    subparsers = parser.add_subparsers(dest='stage', required=True)

    subparsers.add_parser('make-targets', parents=[common], help='Build the crawl target table from the dataset')

    chains = subparsers.add_parser('filter-chains', parents=[common], help='Split national chains out of the dataset')
    chains.add_argument('--removed', type=str, help='Backup file for removed venues')

    for name, help_text in [
        ('check-robots', 'Resolve scrape consent from robots.txt'),
        ('scrape-sites', 'Scrape each consented homepage and conventional deal paths'),
        ('discover-links', 'Find likely menu/specials pages per venue'),
        ('scrape-discovered', 'Extract candidate deals from discovered pages'),
    ]:
        sub = subparsers.add_parser(name, parents=[common], help=help_text)
        sub.add_argument('--input', '-i', type=str, help='Input table')
        sub.add_argument('--log', type=str, help='Companion log file (defaults beside the output)')
        if name != 'check-robots':
            sub.add_argument('--resume', action='store_true',
                             help='Append to an existing output, skipping work already written')
        if name == 'scrape-discovered':
            sub.add_argument('--no-structured', action='store_true', help='Skip the JSON-LD pass')

    review = subparsers.add_parser('review', parents=[common], help='Filter, normalize, dedupe and cap candidates')
    review.add_argument('--input', '-i', type=str, help='Raw candidate table')
    review.add_argument('--cap', type=int, help='Max rows per venue (5 for the homepage pass, 6 for discovered pages)')
    review.add_argument('--no-consent-check', action='store_true',
                        help="Keep rows whose scrape_allowed is not 'true' (hand-written rows)")

    merge = subparsers.add_parser('merge', parents=[common], help='Merge reviewed rows into the dataset')
    merge.add_argument('--input', '-i', type=str, nargs='+', help='One or more reviewed tables')

    missing = subparsers.add_parser('report-missing', parents=[common], help='List venues that still have no deals')
    missing.add_argument('--targets', type=str, help='Checked targets table used for website/consent hints')

    return parser

def main(argv=None) -> int:
    """Main CLI function"""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = PipelineConfig.from_env(max_workers=args.workers, verbose_logging=args.verbose or None)
        if config.verbose_logging:
            logging.getLogger().setLevel(logging.DEBUG)
        return run_stage(args, config)
    except (PipelineError, FileNotFoundError, ValueError) as e:
        logger.error(f"Error: {e}")
        return 1

if __name__ == "__main__":
    exit(main())
