"""
符号解析器测试
"""

import pytest

from flowmaster.indexer.declaration_locator import DeclarationLocator
from flowmaster.indexer.source_registry import SourceRegistry
from flowmaster.indexer.symbol_resolver import SymbolResolver
from flowmaster.utils.file_utils import normalize_path


@pytest.fixture
def resolver(config):
    return SymbolResolver(SourceRegistry(config), DeclarationLocator(), config)


def _calls(handle):
    """按文档顺序收集调用表达式"""
    found = []
    stack = [handle.root]
    while stack:
        node = stack.pop()
        if node.type == "call_expression":
            found.append(node)
        stack.extend(reversed(node.named_children))
    return found


class TestResolveCall:
    """调用点解析"""

    def test_local_shadowing_wins(self, resolver, write_source):
        handle = resolver.registry.load(write_source("a.ts", """
            function helper() {}

            function main() {
              const helper = () => {};
              helper();
            }
        """))

        decl = resolver.resolve_call(handle, _calls(handle)[0])

        assert decl.start_line == 4

    def test_shadowing_by_non_function_is_unresolved(self, resolver, write_source):
        handle = resolver.registry.load(write_source("a.ts", """
            function helper() {}

            function main(helper) {
              const run = helper;
              run();
            }
        """))

        assert resolver.resolve_call(handle, _calls(handle)[0]) is None

    def test_computed_callee_is_unresolved(self, resolver, write_source):
        handle = resolver.registry.load(write_source("a.ts", """
            const table = {};
            function main() {
              table["go"]();
              (() => {})();
            }
        """))

        calls = _calls(handle)

        assert resolver.resolve_call(handle, calls[0]) is None
        assert resolver.resolve_call(handle, calls[1]) is None

    def test_this_outside_class_is_unresolved(self, resolver, write_source):
        handle = resolver.registry.load(write_source("a.ts", """
            function main() {
              this.run();
            }
        """))

        assert resolver.resolve_call(handle, _calls(handle)[0]) is None

    def test_imported_class_member(self, resolver, write_source):
        write_source("store.ts", """
            export class Store {
              static open() {}
            }
        """)
        handle = resolver.registry.load(write_source("a.ts", """
            import { Store } from './store';

            function main() {
              Store.open();
            }
        """))

        decl = resolver.resolve_call(handle, _calls(handle)[0])

        assert decl.name == "open"
        assert decl.file_path.endswith("store.ts")


class TestLocalBindings:
    """参数、catch 参数和循环变量遮蔽同名函数"""

    @pytest.mark.parametrize("source", [
        "function run(helper: () => void) {\n  helper();\n}\n",
        "function run(cb = 1, helper?: () => void) {\n  helper();\n}\n",
        "function run({ helper }: Handlers) {\n  helper();\n}\n",
        "function run({ cb: helper }: Handlers) {\n  helper();\n}\n",
        "const run = helper => helper();\n",
        "[1].forEach((helper) => helper());\n",
        "class Job {\n  execute(helper: () => void) {\n    helper();\n  }\n}\n",
        "try {\n  run();\n} catch (helper) {\n  helper();\n}\n",
        "for (const helper of handlers) {\n  helper();\n}\n",
        "for (const [key, helper] of entries) {\n  helper();\n}\n",
        "for (let helper = next(); helper; helper = next()) {\n  helper();\n}\n",
    ])
    def test_local_binding_shadows_function(self, resolver, write_source, source):
        handle = resolver.registry.load(write_source("a.ts", source + "function helper() {}\n"))

        call = next(node for node in _calls(handle) if handle.text(node) == "helper()")

        assert resolver.resolve_call(handle, call) is None

    def test_default_value_is_not_a_binding(self, resolver, write_source):
        handle = resolver.registry.load(write_source("a.ts", """
            function run(cb = helper) {
              helper();
            }
            function helper() {}
        """))

        decl = resolver.resolve_call(handle, _calls(handle)[0])

        assert decl.name == "helper"

    def test_unrelated_parameter_keeps_resolution(self, resolver, write_source):
        handle = resolver.registry.load(write_source("a.ts", """
            function run(value: number, helperName: string) {
              helper();
            }
            function helper() {}
        """))

        decl = resolver.resolve_call(handle, _calls(handle)[0])

        assert decl.name == "helper"

    def test_catch_parameter_only_covers_handler(self, resolver, write_source):
        handle = resolver.registry.load(write_source("a.ts", """
            try {
              helper();
            } catch (helper) {}
            function helper() {}
        """))

        decl = resolver.resolve_call(handle, _calls(handle)[0])

        assert decl.name == "helper"


class TestResolveModulePath:
    """import 说明符解析"""

    def test_bare_specifier(self, resolver, tmp_path):
        assert resolver.resolve_module_path(str(tmp_path / "a.ts"), "react") is None

    def test_extension_probing(self, resolver, tmp_path, write_source):
        target = write_source("lib/util.tsx", "export function f() {}\n")

        resolved = resolver.resolve_module_path(str(tmp_path / "a.ts"), "./lib/util")

        assert resolved == normalize_path(target)

    def test_index_file(self, resolver, tmp_path, write_source):
        target = write_source("lib/index.ts", "export function f() {}\n")

        resolved = resolver.resolve_module_path(str(tmp_path / "a.ts"), "./lib")

        assert resolved == normalize_path(target)

    def test_js_specifier_prefers_existing_js(self, resolver, tmp_path, write_source):
        target = write_source("util.js", "export function f() {}\n")

        resolved = resolver.resolve_module_path(str(tmp_path / "a.js"), "./util.js")

        assert resolved == normalize_path(target)

    def test_missing_module(self, resolver, tmp_path):
        assert resolver.resolve_module_path(str(tmp_path / "a.ts"), "./nowhere") is None
