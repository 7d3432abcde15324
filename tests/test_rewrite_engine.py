import json
import os
import stat
from pathlib import Path

import pytest

from forksmith.config import ForkConfig
from forksmith.errors import RewriteError
from forksmith.rewrite import RewriteRule, RuleContext, get_backend, rewrite_source, run_codemods
from forksmith.rewrite.backends import strip_json_comments


class AddUseStrict(RewriteRule):
    name = "use-strict"
    patterns = ("**/*.js",)

    def apply(self, tree, ctx):
        if tree.startswith("'use strict';"):
            return tree
        return "'use strict';\n" + tree


class PinEngine(RewriteRule):
    name = "pin-engine"
    backend = "json"
    patterns = ("**/package.json",)

    def apply(self, tree, ctx):
        tree.setdefault("engines", {})["bun"] = ">=1.0.0"
        return tree


class SortKeys(RewriteRule):
    name = "sort-keys"
    backend = "json"
    patterns = ("**/*.json",)

    def apply(self, tree, ctx):
        return dict(sorted(tree.items()))


def _ctx(tmp_path: Path, name: str = "a.js") -> RuleContext:
    return RuleContext(path=tmp_path / name, rel_path=name, config=ForkConfig(root=tmp_path))


def test_rule_without_effect_keeps_original_formatting(tmp_path):
    source = '{"name":"x",   "engines": {"bun": ">=1.0.0"}}'
    result, text = rewrite_source(source, [PinEngine()], _ctx(tmp_path, "package.json"))
    assert not result.changed
    assert result.applied == []
    assert text == source


def test_key_reordering_counts_as_a_change(tmp_path):
    source = '{\n  "b": 1,\n  "a": 2\n}\n'
    result, text = rewrite_source(source, [SortKeys()], _ctx(tmp_path, "x.json"))
    assert result.changed
    assert list(json.loads(text)) == ["a", "b"]


def test_unparseable_file_skips_rule_unless_strict(tmp_path):
    ctx = _ctx(tmp_path, "package.json")
    result, text = rewrite_source("{not json", [PinEngine()], ctx)
    assert not result.changed
    assert text == "{not json"
    assert any("pin-engine" in w for w in result.warnings)
    with pytest.raises(RewriteError):
        rewrite_source("{not json", [PinEngine()], _ctx(tmp_path, "package.json"), strict=True)


def test_run_codemods_writes_once_and_is_idempotent(tmp_path):
    target = tmp_path / "src" / "index.js"
    target.parent.mkdir()
    target.write_text("console.log(1);\n", encoding="utf-8")
    config = ForkConfig(root=tmp_path)

    first = run_codemods(config, [AddUseStrict()])
    assert [r.path for r in first.changed] == [target]
    assert target.read_text(encoding="utf-8") == "'use strict';\nconsole.log(1);\n"

    second = run_codemods(config, [AddUseStrict()])
    assert second.changed == []
    assert second.exit_code == 0


def test_dry_run_leaves_files_alone(tmp_path):
    target = tmp_path / "index.js"
    target.write_text("run();\n", encoding="utf-8")
    run = run_codemods(ForkConfig(root=tmp_path), [AddUseStrict()], write=False)
    assert run.dry_run
    assert len(run.changed) == 1
    assert not run.changed[0].written
    assert target.read_text(encoding="utf-8") == "run();\n"


def test_backup_and_file_mode_are_kept(tmp_path):
    target = tmp_path / "start.js"
    target.write_text("run();\n", encoding="utf-8")
    os.chmod(target, 0o755)
    run = run_codemods(ForkConfig(root=tmp_path), [AddUseStrict()], backup=True)
    backup = tmp_path / "start.js.bak"
    assert run.changed[0].backup == backup
    assert backup.read_text(encoding="utf-8") == "run();\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o755
    assert not (tmp_path / "start.js.tmp").exists()

    # backups are never rewritten themselves
    again = run_codemods(ForkConfig(root=tmp_path), [AddUseStrict()], backup=True)
    assert again.changed == []


def test_globs_narrow_the_candidate_files(tmp_path):
    for name in ("a.js", "b.js"):
        (tmp_path / name).write_text("x();\n", encoding="utf-8")
    run = run_codemods(ForkConfig(root=tmp_path), [AddUseStrict()], globs=["b.js"])
    assert [r.path.name for r in run.changed] == ["b.js"]
    assert (tmp_path / "a.js").read_text(encoding="utf-8") == "x();\n"


def test_jsonc_comments_and_trailing_commas():
    text = '{\n  // comment\n  "url": "http://example.com", /* block */\n  "list": [1, 2,],\n}\n'
    assert json.loads(strip_json_comments(text)) == {"url": "http://example.com", "list": [1, 2]}
    assert get_backend("jsonc").parse(text)["url"] == "http://example.com"


def test_yaml_backend_keeps_on_key_as_string():
    backend = get_backend("yaml")
    tree = backend.parse("on:\n  push:\n    branches: [main]\n")
    assert "on" in tree
    assert backend.render(tree).startswith("on:\n")
