import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from config.scan_config import ScanConfig, ScanConfigError
from handlers.restaurant_bill_handler import RestaurantBillHandler
from models.image import PreprocessingError
from ocr import OCRServiceError
from services.bill_scan_service import BillScanService
from utils.food_vocabulary import find_closest_match
from utils.image_preprocessor import PreprocessOptions
from utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def build_options(args: argparse.Namespace, defaults: PreprocessOptions) -> PreprocessOptions:
    """Combine command line switches with the configured defaults."""
    return PreprocessOptions(
        enhance_contrast=defaults.enhance_contrast and not args.no_contrast,
        sharpen=defaults.sharpen and not args.no_sharpen,
        threshold=defaults.threshold if args.threshold is None else args.threshold,
        remove_background=(defaults.remove_background if args.remove_background is None
                           else args.remove_background)
    )


def scan_image(args: argparse.Namespace, config: ScanConfig) -> int:
    """Scan a bill photo and print the parsed result."""
    service = BillScanService.from_config(config)
    options = build_options(args, config.default_options())

    def report(percent: int) -> None:
        print(f"OCR progress: {percent}%", file=sys.stderr)

    processed = service.preprocess(args.image, options)
    if args.save_processed:
        processed.save(args.save_processed)
        print(f"Processed image saved to {args.save_processed}", file=sys.stderr)

    result = service.scan_processed(processed, on_progress=report)
    print_json(result.to_dict())
    if result.is_empty:
        print("No items found; enter them manually or retry with --threshold", file=sys.stderr)
    return 0


def parse_text_file(args: argparse.Namespace) -> int:
    """Parse OCR text from a file, or stdin when the path is '-'."""
    if args.textfile == '-':
        text = sys.stdin.read()
    else:
        with open(args.textfile, 'r', encoding='utf-8', errors='replace') as f:
            text = f.read()

    result = RestaurantBillHandler().parse(text)
    print_json(result.to_dict())
    return 0


def match_name(args: argparse.Namespace) -> int:
    """Print the closest vocabulary entry for a name."""
    match = find_closest_match(args.name, max_distance=args.max_distance)
    if match is None:
        print_json({'query': args.name, 'match': None})
        return 1

    print_json({
        'query': args.name,
        'match': {
            'matched_name': match.matched_name,
            'edit_distance': match.edit_distance,
            'confidence': match.confidence
        }
    })
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract items from restaurant bill photos")
    parser.add_argument('--debug', action='store_true', help="Enable debug logging")
    subparsers = parser.add_subparsers(dest='command', required=True)

    scan = subparsers.add_parser('scan', help="Scan a bill photo")
    scan.add_argument('image', help="Path to the bill photo")
    scan.add_argument('--no-contrast', action='store_true', help="Skip contrast enhancement")
    scan.add_argument('--no-sharpen', action='store_true', help="Skip sharpening")
    # Unset switches fall back to SCAN_THRESHOLD / SCAN_REMOVE_BACKGROUND
    scan.add_argument('--threshold', action=argparse.BooleanOptionalAction, default=None,
                      help="Apply adaptive thresholding")
    scan.add_argument('--remove-background', action=argparse.BooleanOptionalAction, default=None,
                      help="Remove the background using the segmentation service")
    scan.add_argument('--save-processed', metavar='PATH', help="Write the processed image as PNG")

    parse = subparsers.add_parser('parse', help="Parse OCR text")
    parse.add_argument('textfile', help="Text file with OCR output, '-' for stdin")

    match = subparsers.add_parser('match', help="Find the closest known menu item")
    match.add_argument('name', help="Item name to look up")
    match.add_argument('--max-distance', type=int, default=3, help="Largest edit distance accepted")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    config = ScanConfig()
    setup_logging(log_dir=config.log_dir, debug_mode=args.debug or config.debug, log_to_file=False)

    try:
        if args.command == 'scan':
            return scan_image(args, config)
        if args.command == 'parse':
            return parse_text_file(args)
        return match_name(args)
    except (PreprocessingError, OCRServiceError, ScanConfigError) as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
