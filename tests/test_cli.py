"""
Tests for the command line front end: option mapping and exit status.
"""

import unittest
from unittest.mock import MagicMock, patch

from vgif.cli import VgifCLI
from vgif.error_handler import ConversionFailed
from vgif.models import ConversionResult, LocalFile, RemoteVideo


class TestVgifCLI(unittest.TestCase):

    def setUp(self):
        patchers = [
            patch('vgif.cli.setup_logging'),
            patch.object(VgifCLI, '_setup_signal_handlers'),
            patch('vgif.cli.VideoGifConverter'),
        ]
        mocks = [p.start() for p in patchers]
        for p in patchers:
            self.addCleanup(p.stop)
        self.converter_cls = mocks[2]
        self.converter = MagicMock()
        self.converter.convert.return_value = ConversionResult(
            output_path='clip.gif', tier='single_pass', width=480, fps=30, size_mb=1.5, optimized=True)
        self.converter_cls.return_value = self.converter

    def _converted_request(self):
        return self.converter.convert.call_args[0][0]

    def test_defaults_come_from_config(self):
        status = VgifCLI().main(['-i', 'clip.mp4'])

        self.assertEqual(status, 0)
        request = self._converted_request()
        self.assertEqual(request.source, LocalFile('clip.mp4'))
        self.assertEqual((request.duration, request.width, request.fps), (5, 480, 30))
        self.assertEqual((request.colors, request.lossy, request.dither), (256, 80, 'sierra2_4a'))
        self.assertTrue(request.use_cache)

    def test_options_are_applied(self):
        VgifCLI().main([
            '-u', 'https://www.youtube.com/watch?v=dQw4w9WgXcQ', '-s', '42', '-d', '4', '-c', '0.5',
            '-p', '2', '-w', '320', '-f', '15', '--colors', '64', '--lossy', '30', '--dither', 'bayer',
            '--quality', 'high', '--no-cache', '-o', 'party.gif',
        ])

        request = self._converted_request()
        self.assertEqual(request.source, RemoteVideo('dQw4w9WgXcQ', 'https://www.youtube.com/watch?v=dQw4w9WgXcQ'))
        self.assertEqual((request.start, request.duration, request.crossfade, request.speed), (42, 4, 0.5, 2))
        self.assertEqual((request.width, request.fps), (320, 15))
        self.assertEqual((request.colors, request.lossy, request.dither), (64, 30, 'bayer'))
        self.assertEqual(request.quality, 'high')
        self.assertFalse(request.use_cache)
        self.assertEqual(request.output_path, 'party.gif')

    def test_url_and_input_together_exit_nonzero(self):
        status = VgifCLI().main(['-u', 'https://youtu.be/dQw4w9WgXcQ', '-i', 'clip.mp4'])

        self.assertEqual(status, 1)
        self.converter.convert.assert_not_called()

    def test_missing_source_exits_nonzero(self):
        self.assertEqual(VgifCLI().main([]), 1)

    def test_conversion_failure_exits_nonzero(self):
        self.converter.convert.side_effect = ConversionFailed('All GIF conversion methods failed')
        self.assertEqual(VgifCLI().main(['-i', 'clip.mp4']), 1)

    def test_unexpected_error_exits_nonzero(self):
        self.converter.convert.side_effect = RuntimeError('boom')
        self.assertEqual(VgifCLI().main(['-i', 'clip.mp4']), 1)

    def test_invalid_dither_is_rejected_by_parser(self):
        with self.assertRaises(SystemExit):
            VgifCLI().main(['-i', 'clip.mp4', '--dither', 'noise'])


if __name__ == '__main__':
    unittest.main()
