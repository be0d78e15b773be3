"""
Tests for the end-to-end conversion pipeline with engines mocked out.
"""

import os
import tempfile
import unittest
from unittest.mock import patch

from vgif.config_manager import ConfigManager
from vgif.converter import VideoGifConverter, resolve_output_path, unique_path
from vgif.encoding_cascade import EncodingCascade
from vgif.error_handler import ConversionFailed, InvalidParameter
from vgif.models import ConversionRequest, LocalFile, RemoteVideo
from vgif.segment_cache import SegmentCache


class FakeOptimizer:
    def __init__(self):
        self.calls = []

    def post_compress(self, gif_path, colors, lossy, dither):
        self.calls.append((os.path.exists(gif_path), colors, lossy, dither))
        return True


class TestOutputNaming(unittest.TestCase):

    def setUp(self):
        self.workdir = tempfile.mkdtemp()

    def tearDown(self):
        for name in os.listdir(self.workdir):
            os.remove(os.path.join(self.workdir, name))
        os.rmdir(self.workdir)

    def test_explicit_output_gets_gif_suffix(self):
        target = os.path.join(self.workdir, 'party')
        request = ConversionRequest(source=LocalFile('clip.mp4'), output_path=target)
        self.assertEqual(resolve_output_path(request), target + '.gif')

    def test_default_names(self):
        local = ConversionRequest(source=LocalFile(os.path.join(self.workdir, 'clip.mp4')))
        self.assertEqual(resolve_output_path(local), os.path.join(self.workdir, 'clip.gif'))

        remote = ConversionRequest(source=RemoteVideo('dQw4w9WgXcQ', 'https://youtu.be/dQw4w9WgXcQ'))
        self.assertEqual(resolve_output_path(remote), 'youtube-dQw4w9WgXcQ.gif')

    def test_existing_files_are_never_overwritten(self):
        base = os.path.join(self.workdir, 'clip.gif')
        for path in (base, os.path.join(self.workdir, 'clip-1.gif')):
            open(path, 'wb').close()
        self.assertEqual(unique_path(base), os.path.join(self.workdir, 'clip-2.gif'))


class TestConvertPipeline(unittest.TestCase):

    def setUp(self):
        self.workdir = tempfile.mkdtemp()
        self.input_path = os.path.join(self.workdir, 'clip.mp4')
        with open(self.input_path, 'wb') as handle:
            handle.write(b'\x00' * 128)
        self.output_path = os.path.join(self.workdir, 'out.gif')

        self.optimizer = FakeOptimizer()
        self.converter = VideoGifConverter(
            config=ConfigManager(),
            cache=SegmentCache(enabled=False),
            optimizer=self.optimizer,
        )
        self.cascade_calls = []
        self.temp_dirs = []

    def tearDown(self):
        for root, dirs, files in os.walk(self.workdir, topdown=False):
            for name in files:
                os.remove(os.path.join(root, name))
            for name in dirs:
                os.rmdir(os.path.join(root, name))
        os.rmdir(self.workdir)

    def _fake_cascade(self, fail=False):
        def run(cascade, input_path, output_path, params, settings):
            self.cascade_calls.append((input_path, params, settings))
            self.temp_dirs.append(cascade.tracker.temp_dir)
            if fail:
                raise ConversionFailed('All GIF conversion methods failed')
            with open(output_path, 'wb') as handle:
                handle.write(b'\x00' * 32)
            return 'single_pass'
        return patch.object(EncodingCascade, 'run', autospec=True, side_effect=run)

    def _request(self, **overrides):
        values = dict(source=LocalFile(self.input_path), start=2, duration=3,
                      output_path=self.output_path, colors=128, lossy=40)
        values.update(overrides)
        return ConversionRequest(**values)

    def test_local_conversion_without_loop(self):
        with self._fake_cascade():
            result = self.converter.convert(self._request())

        self.assertEqual(result.output_path, self.output_path)
        self.assertEqual(result.tier, 'single_pass')
        self.assertTrue(result.optimized)
        self.assertTrue(os.path.exists(self.output_path))

        input_path, params, settings = self.cascade_calls[0]
        self.assertEqual(input_path, self.input_path)
        self.assertEqual((params.offset, params.duration), (2, 3))
        self.assertEqual((params.width, params.fps), (480, 30))
        self.assertEqual((settings.colors, settings.dither), (128, 'sierra2_4a'))
        self.assertEqual(self.optimizer.calls, [(True, 128, 40, 'sierra2_4a')])
        self.assertFalse(os.path.exists(self.temp_dirs[0]))

    def test_loop_clip_is_encoded_whole(self):
        loop_calls = []

        def fake_loop(clip, total, crossfade, tracker, offset=0.0, threads=0, show_progress=False):
            loop_calls.append((clip, total, crossfade, offset))
            path = str(tracker.temp_path('loop.mp4'))
            with open(path, 'wb') as handle:
                handle.write(b'\x00')
            return path

        with self._fake_cascade(), patch('vgif.converter.synthesize_loop', side_effect=fake_loop):
            self.converter.convert(self._request(crossfade=0.5))

        self.assertEqual(loop_calls, [(self.input_path, 3, 0.5, 2)])
        input_path, params, _ = self.cascade_calls[0]
        self.assertTrue(input_path.endswith('loop.mp4'))
        self.assertEqual((params.offset, params.duration), (0.0, 2.5))

    def test_speed_rescales_local_offset(self):
        def fake_speed(path, speed, tracker, threads=0, show_progress=False):
            return str(tracker.temp_path('speed.mp4'))

        with self._fake_cascade(), patch('vgif.converter.apply_speed', side_effect=fake_speed):
            self.converter.convert(self._request(speed=2.0))

        _, params, _ = self.cascade_calls[0]
        self.assertEqual(params.offset, 1.0)

    def test_failed_speed_keeps_offset(self):
        with self._fake_cascade(), patch('vgif.converter.apply_speed', side_effect=lambda path, *a, **k: path):
            self.converter.convert(self._request(speed=2.0))

        _, params, _ = self.cascade_calls[0]
        self.assertEqual(params.offset, 2)

    def test_oversized_request_is_constrained(self):
        with self._fake_cascade():
            result = self.converter.convert(self._request(width=1920, duration=10, max_size_mb=5))

        self.assertLess(result.width, 1920)

    def test_cascade_failure_cleans_up_and_leaves_no_output(self):
        with self._fake_cascade(fail=True):
            with self.assertRaises(ConversionFailed):
                self.converter.convert(self._request())

        self.assertFalse(os.path.exists(self.output_path))
        self.assertFalse(os.path.exists(self.temp_dirs[0]))
        self.assertEqual(self.optimizer.calls, [])

    def test_invalid_request_fails_before_any_work(self):
        with self._fake_cascade():
            with self.assertRaises(InvalidParameter):
                self.converter.convert(self._request(colors=1))
        self.assertEqual(self.cascade_calls, [])


if __name__ == '__main__':
    unittest.main()
