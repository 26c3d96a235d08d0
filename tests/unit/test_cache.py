"""Unit tests for the macro generation cache."""
import dataclasses
import io
import os
import threading
import time
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from memeforge.cache import (CacheStats, CacheStore, EtagIndex, GenerationCache, HashingWriter,
                             SingleFlight, etag_for_file)
from memeforge.cache import stats as counters
from memeforge.cache.generator import PARTIAL_SUFFIX
from memeforge.config import (DEFAULT_MAX_ACCESS_AGE, MACRO_MAX_AGE, TEMPLATE_MAX_AGE,
                              CacheConfig)
from memeforge.errors import (ExtensionMismatchError, RenderError, TemplateNotFoundError,
                              UnsupportedFormatError)
from memeforge.models import Template
from memeforge.overlay import MacroRenderer


class CountingRenderer(MacroRenderer):
    """MacroRenderer that counts still renders, optionally blocking or failing."""

    def __init__(self, gate=None, fail=False):
        super().__init__()
        self.calls = 0
        self.gate = gate
        self.fail = fail
        self._lock = threading.Lock()

    def render_still(self, template_image, macro):
        with self._lock:
            self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail:
            raise RenderError("render failed")
        return super().render_still(template_image, macro)


def _wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while not predicate():
        if time.time() > deadline:
            raise AssertionError("condition not reached")
        time.sleep(0.01)


@pytest.fixture
def make_cache(cache_config, template_resolver, png_template, jpeg_template, gif_template):
    """Factory for a GenerationCache over the three test templates."""
    def _make(renderer=None, config=None):
        return GenerationCache(config or cache_config,
                               template_resolver(png_template, jpeg_template, gif_template),
                               renderer=renderer)
    return _make


class TestEtags:
    """Test content hashing."""

    def test_hashing_writer_matches_file_hash(self, tmp_path):
        """The streamed ETag equals a hash of the written file."""
        path = tmp_path / "out.bin"
        with open(path, 'wb') as f:
            writer = HashingWriter(f)
            writer.write(b"hello ")
            writer.write(b"world")
            writer.flush()

        assert writer.bytes_written == 11
        assert writer.etag() == etag_for_file(str(path))
        assert writer.etag().startswith('"') and writer.etag().endswith('"')
        assert len(writer.etag()) == 66

    def test_hashing_writer_hides_fileno(self, tmp_path):
        """Encoders cannot bypass the hash through a file descriptor."""
        with open(tmp_path / "x", 'wb') as f:
            assert not hasattr(HashingWriter(f), 'fileno')

    def test_pillow_writes_through_hasher(self, still_image):
        """Pillow output streamed through the writer is fully hashed."""
        buf = io.BytesIO()
        writer = HashingWriter(buf)
        still_image.save(writer, format='PNG')
        assert writer.bytes_written == len(buf.getvalue())

    def test_etag_index(self):
        """Entries can be set, read and discarded."""
        index = EtagIndex()
        index.set('/a', '"1"')
        assert index.get('/a') == '"1"'
        assert '/a' in index
        index.discard('/a')
        index.discard('/missing')
        assert index.get('/a') is None
        assert len(index) == 0


class TestSingleFlight:
    """Test deduplication of concurrent calls."""

    def _run_concurrently(self, flight, fn, count):
        results, errors = [], []
        lock = threading.Lock()

        def call():
            try:
                result = flight.do('key', fn)
                with lock:
                    results.append(result)
            except Exception as e:
                with lock:
                    errors.append(e)

        threads = [threading.Thread(target=call) for _ in range(count)]
        for t in threads:
            t.start()
        return threads, results, errors

    def test_concurrent_callers_share_one_call(self):
        """K concurrent callers cause exactly one call and see its result."""
        flight = SingleFlight()
        gate = threading.Event()
        calls = []

        def work():
            calls.append(1)
            gate.wait(timeout=5)
            return 'value'

        threads, results, errors = self._run_concurrently(flight, work, 6)
        _wait_for(lambda: flight.in_flight('key') and flight._slots['key'].waiters == 5)
        gate.set()
        for t in threads:
            t.join(timeout=5)

        assert len(calls) == 1
        assert errors == []
        assert sorted(results) == [('value', False)] + [('value', True)] * 5
        assert not flight.in_flight('key')

    def test_error_is_shared(self):
        """Every waiter sees the leader's exception."""
        flight = SingleFlight()
        gate = threading.Event()

        def work():
            gate.wait(timeout=5)
            raise ValueError("broken")

        threads, results, errors = self._run_concurrently(flight, work, 4)
        _wait_for(lambda: flight.in_flight('key') and flight._slots['key'].waiters == 3)
        gate.set()
        for t in threads:
            t.join(timeout=5)

        assert results == []
        assert len(errors) == 4
        assert all(e is errors[0] for e in errors)

    def test_next_call_after_failure_runs_again(self):
        """A settled key starts a fresh call."""
        flight = SingleFlight()
        with pytest.raises(ValueError):
            flight.do('key', lambda: int("x"))
        assert flight.do('key', lambda: 2) == (2, False)


class TestCacheConfig:
    """Test cache configuration."""

    def test_macro_dir(self, data_dir):
        """Cached macros live in a subdirectory of the data directory."""
        config = CacheConfig(data_dir=str(data_dir))
        assert config.macro_dir == os.path.join(str(data_dir), 'macros')

    def test_non_positive_thresholds_use_defaults(self):
        """Zero or negative eviction thresholds fall back to the defaults."""
        config = CacheConfig(max_access_age=0, min_prune_bytes=-5)
        assert config.max_access_age == DEFAULT_MAX_ACCESS_AGE
        assert config.min_prune_bytes == 50 << 20

    @pytest.mark.parametrize('kwargs', [{'data_dir': ''}, {'poll_interval': 0},
                                        {'jpeg_quality': 0}, {'max_workers': 0}])
    def test_invalid_values(self, kwargs):
        """Unusable settings are rejected."""
        with pytest.raises(ValueError):
            CacheConfig(**kwargs)

    def test_from_env(self, environment_variables, tmp_path):
        """Environment variables are read and explicit overrides win."""
        environment_variables['MEMEFORGE_DATA_DIR'] = str(tmp_path)
        environment_variables['MEMEFORGE_CACHE_SEED'] = 'abcd'
        environment_variables['MEMEFORGE_MIN_PRUNE_MIB'] = '10'

        config = CacheConfig.from_env(cache_seed='beef', max_workers=None)

        assert config.data_dir == str(tmp_path)
        assert config.cache_seed == 'beef'
        assert config.min_prune_bytes == 10 << 20


class TestCacheStore:
    """Test cache layout and seed handling."""

    def test_cache_path_uses_seed_id_and_extension(self, cache_config, sample_macro, png_template):
        """File names are seed-id.ext inside the macro directory."""
        store = CacheStore(dataclasses.replace(cache_config, cache_seed='beef'))
        path = store.cache_path(sample_macro, png_template)
        assert path == os.path.join(cache_config.macro_dir, 'beef-7.png')

    def test_set_cache_seed(self, cache_config, sample_macro, png_template):
        """Changing the seed moves every entry to a new path."""
        store = CacheStore(cache_config)
        before = store.cache_path(sample_macro, png_template)

        assert store.set_cache_seed('cafe') is True
        assert store.set_cache_seed('cafe') is False
        assert store.cache_path(sample_macro, png_template) != before
        assert store.seed == 'cafe'

    def test_relative_template_path(self, cache_config):
        """Relative template paths resolve under the data directory."""
        store = CacheStore(cache_config)
        template = Template(id=5, path='templates/5.png')
        assert store.template_path(template) == os.path.join(cache_config.data_dir, 'templates/5.png')


class TestGenerationCache:
    """Test fetching and generating cached macros."""

    def test_png_generation(self, make_cache, sample_macro):
        """A miss renders, writes and indexes the file."""
        cache = make_cache()
        content = cache.fetch_or_generate(sample_macro)

        assert os.path.isfile(content.path)
        assert content.path.endswith('.png')
        assert content.etag == etag_for_file(content.path)
        assert content.max_age == MACRO_MAX_AGE
        assert cache.etags.get(content.path) == content.etag
        with Image.open(content.path) as image:
            assert image.format == 'PNG'
            assert image.size == (160, 120)
        assert cache.stats.get(counters.CACHE_MISS) == 1
        assert cache.stats.get(counters.GENERATE) == 1
        assert cache.stats.get(counters.GENERATE_PNG) == 1
        assert not os.path.exists(content.path + PARTIAL_SUFFIX)

    def test_jpeg_generation(self, make_cache, sample_macro):
        """JPEG templates produce JPEG output."""
        cache = make_cache()
        content = cache.fetch_or_generate(dataclasses.replace(sample_macro, template_id=2))

        assert content.path.endswith('.jpg')
        with Image.open(content.path) as image:
            assert image.format == 'JPEG'
        assert cache.stats.get(counters.GENERATE_JPG) == 1

    def test_gif_generation(self, make_cache, sample_macro):
        """GIF templates produce a GIF with every frame."""
        cache = make_cache()
        content = cache.fetch_or_generate(dataclasses.replace(sample_macro, template_id=3))

        with Image.open(content.path) as image:
            assert image.format == 'GIF'
            assert image.n_frames == 4
            assert image.size == (96, 72)
        assert cache.stats.get(counters.GENERATE_GIF) == 1
        assert cache.stats.get(counters.GENERATE) == 0

    def test_hit_does_not_render(self, cache_config, template_resolver, png_template, sample_macro):
        """An existing file is served as is, hashed on first use."""
        renderer = MagicMock()
        cache = GenerationCache(cache_config, template_resolver(png_template), renderer=renderer)
        path = cache.cache_path(sample_macro)
        os.makedirs(os.path.dirname(path))
        with open(path, 'wb') as f:
            f.write(b"previously rendered")

        content = cache.fetch_or_generate(sample_macro)

        assert content.path == path
        assert content.etag == etag_for_file(path)
        renderer.render_still.assert_not_called()
        assert cache.stats.get(counters.CACHE_HIT) == 1
        assert cache.stats.get(counters.CACHE_MISS) == 0

    def test_generation_is_deterministic(self, make_cache, sample_macro):
        """Regenerating a macro gives the same bytes and ETag."""
        cache = make_cache()
        first = cache.fetch_or_generate(sample_macro)
        cache.remove_cached(sample_macro)
        assert not os.path.exists(first.path)
        assert first.path not in cache.etags

        second = cache.fetch_or_generate(sample_macro)
        assert second.etag == first.etag

    def test_concurrent_requests_render_once(self, make_cache, sample_macro):
        """Concurrent misses for one macro share a single render."""
        gate = threading.Event()
        renderer = CountingRenderer(gate=gate)
        cache = make_cache(renderer)
        path = cache.cache_path(sample_macro)
        results = []
        lock = threading.Lock()

        def fetch():
            content = cache.fetch_or_generate(sample_macro)
            with lock:
                results.append(content)

        threads = [threading.Thread(target=fetch) for _ in range(8)]
        for t in threads:
            t.start()
        _wait_for(lambda: renderer.calls == 1
                  and cache._flight.in_flight(path) and cache._flight._slots[path].waiters == 7)
        gate.set()
        for t in threads:
            t.join(timeout=10)

        assert renderer.calls == 1
        assert len(results) == 8
        assert len({c.etag for c in results}) == 1
        assert all(c.path == path for c in results)
        assert cache.stats.get(counters.CACHE_MISS) == 1
        assert cache.stats.get(counters.CACHE_REUSED) == 7

    def test_render_failure_leaves_nothing_behind(self, make_cache, sample_macro):
        """A failed render leaves no file and the next request renders again."""
        renderer = CountingRenderer(fail=True)
        cache = make_cache(renderer)
        path = cache.cache_path(sample_macro)

        with pytest.raises(RenderError):
            cache.fetch_or_generate(sample_macro)
        assert not os.path.exists(path)
        assert not os.path.exists(path + PARTIAL_SUFFIX)

        renderer.fail = False
        content = cache.fetch_or_generate(sample_macro)
        assert renderer.calls == 2
        assert os.path.isfile(content.path)

    def test_encoder_failure_removes_partial_file(self, make_cache, sample_macro):
        """Bytes written before an encoder error are discarded."""
        cache = make_cache()
        path = cache.cache_path(sample_macro)

        def broken(image, fp):
            fp.write(b"half a png")
            raise OSError("disk full")

        with patch.object(cache, '_encode_png', side_effect=broken):
            with pytest.raises(OSError, match="disk full"):
                cache.fetch_or_generate(sample_macro)

        assert not os.path.exists(path)
        assert not os.path.exists(path + PARTIAL_SUFFIX)
        assert path not in cache.etags

    def test_unsupported_extension(self, cache_config, template_resolver, data_dir, sample_macro):
        """Templates without an encoder are rejected before any output is written."""
        bmp = Template(id=1, path=str(data_dir / "template.bmp"))
        cache = GenerationCache(cache_config, template_resolver(bmp))

        with pytest.raises(UnsupportedFormatError):
            cache.fetch_or_generate(sample_macro)
        assert not os.path.exists(cache.cache_path(sample_macro))

    def test_extension_mismatch(self, make_cache, sample_macro):
        """A requested extension must match the template's, ignoring case."""
        cache = make_cache()
        with pytest.raises(ExtensionMismatchError):
            cache.fetch_or_generate(sample_macro, ext='.gif')
        assert cache.fetch_or_generate(sample_macro, ext='.PNG').path.endswith('.png')

    def test_unknown_template(self, make_cache, sample_macro):
        """A macro whose template is gone cannot be served."""
        cache = make_cache()
        with pytest.raises(TemplateNotFoundError):
            cache.fetch_or_generate(dataclasses.replace(sample_macro, template_id=99))

    def test_seed_change_invalidates(self, make_cache, sample_macro):
        """After a seed change the macro is rendered again under a new name."""
        renderer = CountingRenderer()
        cache = make_cache(renderer)
        first = cache.fetch_or_generate(sample_macro)

        cache.store.set_cache_seed('feed')
        second = cache.fetch_or_generate(sample_macro)

        assert second.path != first.path
        assert renderer.calls == 2

    def test_preload_etags(self, make_cache, cache_config):
        """Existing files are hashed; partial files and directories are skipped."""
        cache = make_cache()
        assert cache.preload_etags() == 0

        os.makedirs(os.path.join(cache_config.macro_dir, 'subdir'))
        done = os.path.join(cache_config.macro_dir, '0000-1.png')
        partial = os.path.join(cache_config.macro_dir, '0000-2.png' + PARTIAL_SUFFIX)
        for path in (done, partial):
            with open(path, 'wb') as f:
                f.write(b"data")

        assert cache.preload_etags() == 1
        assert cache.etags.get(done) == etag_for_file(done)
        assert partial not in cache.etags

    def test_template_content(self, make_cache, png_template):
        """Templates are served with a long lifetime and an ETag."""
        cache = make_cache()
        content = cache.template_content(png_template.id)

        assert content.path == png_template.path
        assert content.max_age == TEMPLATE_MAX_AGE
        headers = content.headers()
        assert headers['Cache-Control'] == 'public, max-age=31536000, no-transform'
        assert headers['ETag'] == etag_for_file(png_template.path)

        with pytest.raises(ExtensionMismatchError):
            cache.template_content(png_template.id, ext='.jpg')


class TestCacheStats:
    """Test cache counters."""

    def test_counters(self):
        """Counters start at zero and accumulate."""
        stats = CacheStats()
        assert stats.get(counters.CACHE_HIT) == 0
        stats.add(counters.CACHE_HIT)
        stats.add(counters.EVICTED, 3)
        assert stats.snapshot() == {counters.CACHE_HIT: 1, counters.EVICTED: 3}

    def test_log_summary(self):
        """The summary carries counters and memory usage."""
        stats = CacheStats()
        stats.add(counters.GENERATE)
        with patch('memeforge.cache.stats.logger') as logger:
            summary = stats.log_summary()

        assert summary['counters'] == {counters.GENERATE: 1}
        assert summary['memory_mb'] > 0
        logger.info.assert_called_once()
        assert logger.info.call_args[0][0].startswith("CACHE STATS: ")
