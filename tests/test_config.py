"""Unit tests for basegen.config."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from basegen.config import (
    DEFAULT_BASELINE,
    Config,
    ConfigError,
    _find_config_file,
    _git_remote_org,
    load,
    parse,
)


class TestDefaults(unittest.TestCase):

    def test_stock_image(self):
        cfg = Config()
        self.assertEqual(cfg.base_image, "ruby:3.3.0-alpine")
        self.assertEqual(cfg.output, "Dockerfile.base.optimized")
        self.assertEqual([c.name for c in cfg.capabilities], ["malloc", "mysql", "webp"])
        self.assertEqual(
            cfg.capabilities[0].candidates,
            (("mimalloc2", "mimalloc2-dev"), ("mimalloc", "mimalloc-dev")),
        )
        self.assertEqual(cfg.push.attempts, 3)
        self.assertEqual(cfg.push.delay, 10.0)
        self.assertIn(["ruby", "--version"], cfg.smoke)

    def test_defaults_not_shared(self):
        a, b = Config(), Config()
        a.baseline.append("extra")
        self.assertNotIn("extra", b.baseline)
        self.assertNotIn("extra", DEFAULT_BASELINE)

    def test_refs(self):
        cfg = Config(image="rails-base", registry="ghcr.io/acme")
        self.assertEqual(cfg.full_image, "ghcr.io/acme/rails-base")
        self.assertEqual(cfg.remote_ref, "ghcr.io/acme/rails-base:latest")
        self.assertEqual(cfg.local_ref, "rails-base:test")


class TestParse(unittest.TestCase):

    def test_scalars(self):
        cfg = parse({"image": "x", "tag": 7, "engine": "podman"})
        self.assertEqual(cfg.image, "x")
        self.assertEqual(cfg.tag, "7")
        self.assertEqual(cfg.engine, "podman")

    def test_candidates_string_or_list(self):
        cfg = parse({"packages": {"optional": [{
            "name": "jemalloc",
            "candidates": ["jemalloc jemalloc-dev", ["jemalloc"]],
            "configure": "RUN true\n",
        }]}})
        cap = cfg.capabilities[0]
        self.assertEqual(cap.candidates, (("jemalloc", "jemalloc-dev"), ("jemalloc",)))
        self.assertEqual(cap.configure, "RUN true")

    def test_empty_optional_list(self):
        cfg = parse({"packages": {"optional": []}})
        self.assertEqual(cfg.capabilities, [])

    def test_baseline_override(self):
        cfg = parse({"packages": {"baseline": "bash curl"}})
        self.assertEqual(cfg.baseline, ["bash", "curl"])

    def test_missing_candidates(self):
        with self.assertRaises(ConfigError):
            parse({"packages": {"optional": [{"name": "x"}]}})

    def test_missing_name(self):
        with self.assertRaises(ConfigError):
            parse({"packages": {"optional": [{"candidates": ["a"]}]}})

    def test_duplicate_capability(self):
        with self.assertRaises(ConfigError):
            parse({"packages": {"optional": [
                {"name": "x", "candidates": ["a"]},
                {"name": "x", "candidates": ["b"]},
            ]}})

    def test_bad_candidate_type(self):
        with self.assertRaises(ConfigError):
            parse({"packages": {"optional": [{"name": "x", "candidates": [3]}]}})

    def test_smoke_strings_are_split(self):
        cfg = parse({"smoke": ["ruby -e 'puts 1'", ["node", "--version"]]})
        self.assertEqual(cfg.smoke, [["ruby", "-e", "puts 1"], ["node", "--version"]])

    def test_push_settings(self):
        cfg = parse({"push": {"attempts": 5, "delay": 2}})
        self.assertEqual(cfg.push.attempts, 5)
        self.assertEqual(cfg.push.delay, 2.0)

    def test_push_attempts_must_be_positive(self):
        with self.assertRaises(ConfigError):
            parse({"push": {"attempts": 0}})

    def test_ruby_section(self):
        cfg = parse({"ruby": {"bundler": "2.5.0", "gems": ["rails"]}})
        self.assertEqual(cfg.ruby.bundler, "2.5.0")
        self.assertEqual(cfg.ruby.gems, ["rails"])

    def test_null_description_and_configure(self):
        cfg = parse({"packages": {"optional": [{
            "name": "x", "candidates": ["a"], "description": None, "configure": None,
        }]}})
        self.assertEqual(cfg.capabilities[0].description, "")
        self.assertEqual(cfg.capabilities[0].configure, "")

    def test_sections_must_be_mappings(self):
        for data in ({"push": 3}, {"ruby": "3.3"}, {"packages": ["bash"]}):
            with self.subTest(data=data), self.assertRaises(ConfigError) as ctx:
                parse(data)
            self.assertIn(next(iter(data)), str(ctx.exception))

    def test_push_numbers_validated(self):
        for push in ({"attempts": "three"}, {"delay": "soon"}, {"attempts": True}, {"delay": -1}):
            with self.subTest(push=push), self.assertRaises(ConfigError) as ctx:
                parse({"push": push})
            self.assertIn("push.", str(ctx.exception))

    def test_lists_validated(self):
        bad = (
            {"packages": {"optional": {"name": "x"}}},
            {"packages": {"optional": [{"name": "x", "candidates": "a b"}]}},
            {"ruby": {"gems": "rails"}},
            {"smoke": "ruby --version"},
            {"smoke": [3]},
        )
        for data in bad:
            with self.subTest(data=data), self.assertRaises(ConfigError):
                parse(data)

    def test_empty_sections_keep_defaults(self):
        cfg = parse({"packages": None, "ruby": None, "push": None})
        self.assertEqual(cfg.push.attempts, 3)
        self.assertEqual(cfg.ruby.bundler, "2.6.5")

    def test_top_level_must_be_mapping(self):
        with self.assertRaises(ConfigError):
            parse(["not", "a", "mapping"])  # type: ignore[arg-type]


class TestFindConfigFile(unittest.TestCase):

    def test_none(self):
        with tempfile.TemporaryDirectory() as d:
            self.assertIsNone(_find_config_file(Path(d)))

    def test_dotfile_preferred(self):
        with tempfile.TemporaryDirectory() as d:
            p1 = Path(d) / ".basegen.yaml"
            p1.write_text("{}\n")
            (Path(d) / ".basegen").mkdir()
            (Path(d) / ".basegen" / "config.yaml").write_text("{}\n")
            self.assertEqual(_find_config_file(Path(d)), p1)


class TestGitRemoteOrg(unittest.TestCase):

    def _remote(self, url: str, rc: int = 0):
        import subprocess
        return subprocess.CompletedProcess(args=[], returncode=rc, stdout=url + "\n", stderr="")

    @patch("basegen.config.subprocess.run")
    def test_ssh(self, mock_run):
        mock_run.return_value = self._remote("git@github.com:Acme/rails-base.git")
        self.assertEqual(_git_remote_org(), "Acme")

    @patch("basegen.config.subprocess.run")
    def test_https(self, mock_run):
        mock_run.return_value = self._remote("https://github.com/acme/rails-base")
        self.assertEqual(_git_remote_org(), "acme")

    @patch("basegen.config.subprocess.run")
    def test_no_remote(self, mock_run):
        mock_run.return_value = self._remote("", rc=2)
        self.assertIsNone(_git_remote_org())

    @patch("basegen.config.subprocess.run", side_effect=FileNotFoundError)
    def test_no_git(self, _mock_run):
        self.assertIsNone(_git_remote_org())


class TestLoad(unittest.TestCase):

    @patch.dict(os.environ, {}, clear=True)
    @patch("basegen.config._git_remote_org", return_value="Acme")
    def test_no_file_uses_git_registry(self, _mock_org):
        with tempfile.TemporaryDirectory() as d:
            cfg = load(Path(d))
        self.assertEqual(cfg.registry, "ghcr.io/acme")
        self.assertEqual(cfg.image, "rails-base")

    @patch.dict(os.environ, {}, clear=True)
    @patch("basegen.config._git_remote_org", return_value=None)
    def test_no_remote_falls_back_to_localhost(self, _mock_org):
        with tempfile.TemporaryDirectory() as d:
            cfg = load(Path(d))
        self.assertEqual(cfg.registry, "localhost")

    @patch.dict(os.environ, {}, clear=True)
    def test_file_values(self):
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / ".basegen.yaml").write_text(
                "image: demo\nregistry: ghcr.io/example\n"
                "packages:\n  optional:\n    - name: webp\n      candidates: [libwebp]\n"
            )
            cfg = load(Path(d))
        self.assertEqual(cfg.image, "demo")
        self.assertEqual(cfg.registry, "ghcr.io/example")
        self.assertEqual([c.name for c in cfg.capabilities], ["webp"])

    @patch.dict(os.environ, {"BASEGEN_REGISTRY": "quay.io/other", "BASEGEN_ENGINE": "podman"}, clear=True)
    def test_environment_wins_over_file(self):
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / ".basegen.yaml").write_text("registry: ghcr.io/example\n")
            cfg = load(Path(d))
        self.assertEqual(cfg.registry, "quay.io/other")
        self.assertEqual(cfg.engine, "podman")

    @patch.dict(os.environ, {}, clear=True)
    def test_empty_file(self):
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / ".basegen.yaml").write_text("")
            with patch("basegen.config._git_remote_org", return_value=None):
                cfg = load(Path(d))
        self.assertEqual(cfg.base_image, "ruby:3.3.0-alpine")

    @patch.dict(os.environ, {}, clear=True)
    def test_invalid_yaml(self):
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / ".basegen.yaml").write_text("image: [unclosed\n")
            with self.assertRaises(ConfigError):
                load(Path(d))


def test_load_project_fixture(tmp_project, monkeypatch):
    monkeypatch.delenv("BASEGEN_REGISTRY", raising=False)
    monkeypatch.delenv("BASEGEN_ENGINE", raising=False)
    cfg = load(tmp_project)
    assert cfg.image == "demo-base"
    assert cfg.remote_ref == "ghcr.io/example/demo-base:latest"
    assert cfg.baseline == ["bash", "curl"]
    assert [c.candidates for c in cfg.capabilities] == [(("libwebp", "libwebp-dev"),)]


if __name__ == "__main__":
    unittest.main()
