"""
Command Line Interface for vgif
Argument parsing, logging setup and exit status around VideoGifConverter
"""

import argparse
import signal
import sys
import logging
from typing import Any, Dict, List, Optional

from .config_manager import ConfigManager
from .converter import VideoGifConverter
from .error_handler import ErrorHandler, VgifError
from .logger_setup import setup_logging
from .models import DITHER_MODES, QUALITY_TIERS, ConversionRequest, source_from_options

logger = logging.getLogger(__name__)


class VgifCLI:
    def __init__(self):
        self.config: Optional[ConfigManager] = None
        self.error_handler = ErrorHandler()

    def main(self, argv: Optional[List[str]] = None) -> int:
        """Run one conversion; returns the process exit status"""
        args = self._parse_arguments(argv)

        self.config = ConfigManager(args.config_dir)
        self.config.update_from_args(self._extract_config_overrides(args))
        setup_logging(self.config.get_logging_config(), verbose=args.verbose, log_file=args.log_file)
        self._setup_signal_handlers()

        try:
            request = self._build_request(args)
            result = VideoGifConverter(self.config).convert(request)
        except VgifError as e:
            self.error_handler.handle_error(e, verbose=args.verbose)
            return 1
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 1
        except Exception as e:
            logger.error(f"Unexpected error: {e}")
            logger.debug("Traceback", exc_info=True)
            return 1

        print(f"GIF created: {result.output_path} ({result.size_mb:.2f}MB)")
        return 0

    def _setup_signal_handlers(self):
        """Turn SIGTERM into KeyboardInterrupt so temp files are swept on the way out"""
        def signal_handler(signum, frame):
            raise KeyboardInterrupt(signal.Signals(signum).name)

        if hasattr(signal, 'SIGTERM'):
            signal.signal(signal.SIGTERM, signal_handler)

    def _parse_arguments(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse command line arguments"""
        parser = argparse.ArgumentParser(
            prog='vgif',
            description="Create optimized, optionally seamlessly looping GIFs from videos",
            epilog="Examples:\n"
                   "  %(prog)s -u https://youtu.be/dQw4w9WgXcQ -s 42 -d 4 -c 0.5\n"
                   "  %(prog)s -i clip.mp4 -w 320 -f 15 --colors 128 --lossy 60\n",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        source = parser.add_argument_group('source')
        source.add_argument('-u', '--url', help='Video URL')
        source.add_argument('-i', '--input', help='Local video file')

        clip = parser.add_argument_group('clip')
        clip.add_argument('-s', '--start', type=float, default=0.0, help='Start time in seconds (default: 0)')
        clip.add_argument('-d', '--duration', type=float, help='Duration in seconds (default: 5)')
        clip.add_argument('-c', '--crossfade', type=float, default=0.0,
                          help='Crossfade seconds for a seamless loop, 0 disables (default: 0)')
        clip.add_argument('-p', '--speed', type=float, default=1.0, help='Playback speed factor (default: 1.0)')

        output = parser.add_argument_group('output')
        output.add_argument('-o', '--output', help='Output GIF path')
        output.add_argument('-w', '--width', type=int, help='Output width in pixels (default: 480)')
        output.add_argument('-f', '--fps', type=int, help='Frames per second (default: 30)')
        output.add_argument('-l', '--loops', type=int, help='Loop count, 0 loops forever (default: 0)')
        output.add_argument('-m', '--max-size', type=float, metavar='MB',
                            help='Target maximum size in MB (default: 50)')
        output.add_argument('--quality', choices=QUALITY_TIERS,
                            help='Source quality to download (default: auto)')

        compression = parser.add_argument_group('compression')
        compression.add_argument('--colors', type=int, help='Palette size, 2-256 (default: 256)')
        compression.add_argument('--lossy', type=int, help='gifsicle lossy level, 0-100 (default: 80)')
        compression.add_argument('--dither', choices=DITHER_MODES, help='Dither method (default: sierra2_4a)')

        runtime = parser.add_argument_group('runtime')
        runtime.add_argument('--memory-limit', type=int, metavar='MB',
                             help='Warn when memory use exceeds this many MB, 0 disables (default: 2048)')
        runtime.add_argument('--threads', type=int, help='Encoder threads, 0 uses all cores (default: 0)')
        runtime.add_argument('--no-cache', action='store_true', help='Disable the segment cache')
        runtime.add_argument('--cache-dir', help='Cache directory (default: ~/.vgif-cache)')
        runtime.add_argument('--cache-size', type=float, metavar='MB', help='Maximum cache size in MB (default: 2048)')
        runtime.add_argument('--config-dir', help='Directory containing an overriding vgif.yaml')
        runtime.add_argument('--log-file', help='Also write DEBUG logs to this file')
        runtime.add_argument('-v', '--verbose', action='store_true', help='Verbose output with progress bars')

        return parser.parse_args(argv)

    def _extract_config_overrides(self, args: argparse.Namespace) -> Dict[str, Any]:
        """Extract configuration overrides from CLI arguments"""
        overrides = {
            'cache.dir': args.cache_dir,
            'cache.max_size_mb': args.cache_size,
            'encoding.width': args.width,
            'encoding.fps': args.fps,
            'encoding.duration': args.duration,
            'encoding.loops': args.loops,
            'encoding.max_size_mb': args.max_size,
            'encoding.threads': args.threads,
            'encoding.quality': args.quality,
            'gifsicle.colors': args.colors,
            'gifsicle.lossy': args.lossy,
            'gifsicle.dither': args.dither,
            'memory.limit_mb': args.memory_limit,
        }
        if args.no_cache:
            overrides['cache.enabled'] = False
        return overrides

    def _build_request(self, args: argparse.Namespace) -> ConversionRequest:
        cfg = self.config.get
        return ConversionRequest(
            source=source_from_options(args.url, args.input),
            start=args.start,
            duration=cfg('encoding.duration', 5),
            width=cfg('encoding.width', 480),
            fps=cfg('encoding.fps', 30),
            loops=cfg('encoding.loops', 0),
            crossfade=args.crossfade,
            speed=args.speed,
            colors=cfg('gifsicle.colors', 256),
            lossy=cfg('gifsicle.lossy', 80),
            dither=cfg('gifsicle.dither', 'sierra2_4a'),
            max_size_mb=cfg('encoding.max_size_mb', 50),
            quality=cfg('encoding.quality', 'auto'),
            threads=cfg('encoding.threads', 0),
            use_cache=cfg('cache.enabled', True),
            output_path=args.output,
            memory_limit_mb=cfg('memory.limit_mb', 2048),
            verbose=args.verbose,
        )


def main(argv: Optional[List[str]] = None):
    """Entry point for the CLI application"""
    sys.exit(VgifCLI().main(argv))


if __name__ == '__main__':
    main()
