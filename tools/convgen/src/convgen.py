#!/usr/bin/env python3
"""
convgen: Generate LLVM IR conversion code from operation and enum definitions.

Design goals:
- Deterministic output (definition order in, block order out)
- One self-contained block per definition; a failing definition emits nothing
- Data-driven via definition files (.json, or the YAML subset used across the repo)
- Python stdlib only

Builder templates use `$name` placeholders that are resolved against the
operation's operands, attributes and results, or against a small table of
keywords specific to the generation mode. `$$` stands for a literal `$`.

Quoted YAML scalars are taken verbatim (no backslash escapes), so templates
containing quotes should use the `|` block form.
"""

from __future__ import annotations

import argparse
import functools
import io
import json
import re
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TextIO, Tuple, Union


TOOL_NAME = "convgen"

MARKER = "$"

OP_BASE = "LLVM_OpBase"
INTR_OP_BASE = "LLVM_IntrOpBase"
ENUM_ATTR_BASE = "LLVM_EnumAttr"
CENUM_ATTR_BASE = "LLVM_CEnumAttr"

DEFAULT_CPP_NAMESPACE = "::mlir::LLVM"
DEFAULT_ACCESSOR_PREFIX = "get"

OPERAND = "operand"
ATTRIBUTE = "attribute"

_RE_INT = re.compile(r"^-?\d+$")
_RE_HEX = re.compile(r"^0x[0-9a-fA-F]+$")
_RE_NAME_TAIL = re.compile(r"[A-Za-z0-9_]*")

_MISSING = object()


class GenError(Exception):
    def __init__(self, message: str, *, record: Optional[str] = None) -> None:
        super().__init__(message)
        self.record = record


class DefinitionError(GenError):
    pass


class MissingTemplateField(GenError):
    pass


class StructuralViolation(GenError):
    pass


class UnclassifiablePlaceholder(GenError):
    def __init__(self, name: str, op_name: str, *, record: Optional[str] = None) -> None:
        super().__init__(
            f"{MARKER}{name} is not a known keyword, argument, or result of {op_name}",
            record=record,
        )
        self.name = name
        self.op_name = op_name


# ---------------------------------------------------------------------------
# Definition files
# ---------------------------------------------------------------------------


def _strip_comment_line(line: str) -> str:
    stripped = line.lstrip()
    if stripped.startswith("#"):
        return ""
    return line.rstrip("\r\n")


def _parse_scalar(text: str) -> Any:
    s = text.strip()
    if s == "":
        return ""
    if s.startswith("'") and s.endswith("'") and len(s) >= 2:
        return s[1:-1]
    if s.startswith('"') and s.endswith('"') and len(s) >= 2:
        return s[1:-1]
    lower = s.lower()
    if lower == "true":
        return True
    if lower == "false":
        return False
    if s.startswith("[") and s.endswith("]"):
        inner = s[1:-1].strip()
        if inner == "":
            return []
        parts = [p.strip() for p in inner.split(",")]
        return [_parse_scalar(p) for p in parts if p != ""]
    if _RE_HEX.match(s):
        return int(s, 16)
    if _RE_INT.match(s):
        return int(s, 10)
    return s


def _split_key_value(line: str) -> Tuple[str, Optional[str]]:
    if ":" not in line:
        raise DefinitionError(f"Invalid mapping line (missing ':'): {line!r}")
    key, rest = line.split(":", 1)
    key = key.strip()
    if key == "":
        raise DefinitionError(f"Invalid mapping line (empty key): {line!r}")
    rest = rest.strip()
    if rest == "":
        return key, None
    return key, rest


def _next_significant_line(lines: Sequence[str], start_index: int) -> Optional[str]:
    for i in range(start_index, len(lines)):
        cleaned = _strip_comment_line(lines[i])
        if cleaned.strip() == "":
            continue
        return cleaned
    return None


def _is_block_indicator(rest: Optional[str]) -> bool:
    return rest in ("|", "|-")


def _read_block_scalar(
    lines: Sequence[str], start_index: int, parent_indent: int, *, source: str
) -> Tuple[str, int]:
    # Lines are taken verbatim (no comment stripping); trailing blank lines are dropped.
    block: List[str] = []
    base_indent: Optional[int] = None
    index = start_index
    while index < len(lines):
        line = lines[index].rstrip("\r\n")
        if line.strip() == "":
            block.append("")
            index += 1
            continue
        indent = len(line) - len(line.lstrip(" "))
        if indent <= parent_indent:
            break
        if base_indent is None:
            base_indent = indent
        elif indent < base_indent:
            raise DefinitionError(f"{source}:{index+1}: block scalar line is less indented than the first line")
        block.append(line[base_indent:])
        index += 1
    while block and block[-1] == "":
        block.pop()
    return "\n".join(block), index


def parse_yaml_subset(text: str, *, source: str = "<string>") -> Dict[str, Any]:
    lines = text.splitlines()
    root: Dict[str, Any] = {}
    stack: List[Tuple[int, Union[Dict[str, Any], List[Any]]]] = [(0, root)]

    def current_container(expected_indent: int) -> Union[Dict[str, Any], List[Any]]:
        while stack and stack[-1][0] > expected_indent:
            stack.pop()
        if not stack or stack[-1][0] != expected_indent:
            raise DefinitionError(f"{source}: bad indentation at indent={expected_indent}")
        return stack[-1][1]

    def open_nested(container: Union[Dict[str, Any], List[Any]], key: Optional[str], indent: int, line_no: int) -> None:
        next_line = _next_significant_line(lines, line_no)
        if next_line is None:
            raise DefinitionError(f"{source}:{line_no}: {key or '-'!r} missing nested block at end of file")
        next_indent = len(next_line) - len(next_line.lstrip(" "))
        if next_indent <= indent:
            raise DefinitionError(f"{source}:{line_no}: {key or '-'!r} missing nested block")
        nested: Union[Dict[str, Any], List[Any]] = [] if next_line.strip().startswith("-") else {}
        if isinstance(container, list):
            container.append(nested)
        else:
            container[str(key)] = nested
        stack.append((indent + 2, nested))

    index = 0
    while index < len(lines):
        raw = lines[index]
        index += 1
        cleaned = _strip_comment_line(raw)
        if cleaned.strip() == "":
            continue
        indent = len(cleaned) - len(cleaned.lstrip(" "))
        if indent % 2 != 0:
            raise DefinitionError(f"{source}:{index}: indentation must be multiple of 2 spaces")

        content = cleaned.strip()
        container = current_container(indent)

        if content.startswith("- ") or content == "-":
            if not isinstance(container, list):
                raise DefinitionError(f"{source}:{index}: list item in non-list context")
            item_text = content[1:].strip()
            if item_text == "":
                open_nested(container, None, indent, index)
                continue

            if ":" in item_text and not item_text.startswith(("'", '"', "[")):
                key, rest = _split_key_value(item_text)
                item: Dict[str, Any] = {}
                container.append(item)
                stack.append((indent + 2, item))
                if _is_block_indicator(rest):
                    item[key], index = _read_block_scalar(lines, index, indent + 2, source=source)
                elif rest is None:
                    open_nested(item, key, indent + 2, index)
                else:
                    item[key] = _parse_scalar(rest)
                continue

            container.append(_parse_scalar(item_text))
            continue

        if not isinstance(container, dict):
            raise DefinitionError(f"{source}:{index}: mapping entry in non-dict context")
        key, rest = _split_key_value(content)
        if _is_block_indicator(rest):
            container[key], index = _read_block_scalar(lines, index, indent, source=source)
        elif rest is None:
            open_nested(container, key, indent, index)
        else:
            container[key] = _parse_scalar(rest)

    return root


def _require_keys(obj: Dict[str, Any], keys: Sequence[str], *, where: str) -> None:
    missing = [k for k in keys if k not in obj]
    if missing:
        raise DefinitionError(f"{where}: missing required keys: {', '.join(missing)}")


def _expect_type(value: Any, expected: type, *, where: str) -> None:
    if not isinstance(value, expected):
        raise DefinitionError(f"{where}: expected {expected.__name__}, got {type(value).__name__}")


def _as_name_list(value: Any, *, where: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    _expect_type(value, list, where=where)
    for v in value:
        _expect_type(v, str, where=where)
    return tuple(value)


def _load_definition_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise DefinitionError(f"Missing definition file: {path}") from e
    if path.suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DefinitionError(f"Invalid JSON in definition file: {path}: {e}") from e
    else:
        data = parse_yaml_subset(text, source=path.as_posix())
    _expect_type(data, dict, where=path.as_posix())
    return data


@dataclass(frozen=True)
class Record:
    name: str
    bases: Tuple[str, ...]
    fields: Dict[str, Any]
    source: str = "<memory>"

    def has_field(self, field: str) -> bool:
        return field in self.fields

    def _value(self, field: str, expected: type, default: Any) -> Any:
        if field not in self.fields:
            if default is _MISSING:
                raise DefinitionError(f"{self.name}: missing field '{field}'", record=self.name)
            return default
        value = self.fields[field]
        if not isinstance(value, expected):
            raise DefinitionError(
                f"{self.name}: field '{field}' expected {expected.__name__}, got {type(value).__name__}",
                record=self.name,
            )
        return value

    def get_string(self, field: str, default: Any = _MISSING) -> str:
        return self._value(field, str, default)

    def get_list(self, field: str, default: Any = _MISSING) -> List[Any]:
        return self._value(field, list, default)

    def get_bool(self, field: str, default: bool = False) -> bool:
        return self._value(field, bool, default)


class RecordKeeper:
    """Definitions and the class hierarchy they derive from, in declaration order."""

    def __init__(self) -> None:
        self._defs: List[Record] = []
        self._by_name: Dict[str, Record] = {}
        self._class_bases: Dict[str, Tuple[str, ...]] = {}

    def __len__(self) -> int:
        return len(self._defs)

    @classmethod
    def from_paths(cls, paths: Iterable[Path]) -> "RecordKeeper":
        keeper = cls()
        for path in paths:
            keeper.add_data(_load_definition_file(path), source=path.as_posix())
        return keeper

    def add_data(self, data: Dict[str, Any], *, source: str = "<memory>") -> None:
        classes = data.get("classes", []) or []
        _expect_type(classes, list, where=f"{source}:classes")
        for c in classes:
            _expect_type(c, dict, where=f"{source}:classes[]")
            _require_keys(c, ["name"], where=f"{source}:classes[]")
            name = str(c["name"])
            if name in self._class_bases:
                raise DefinitionError(f"{source}: duplicate class {name}")
            self._class_bases[name] = _as_name_list(c.get("bases"), where=f"{source}:{name}:bases")

        defs = data.get("defs", []) or []
        _expect_type(defs, list, where=f"{source}:defs")
        for d in defs:
            _expect_type(d, dict, where=f"{source}:defs[]")
            _require_keys(d, ["name"], where=f"{source}:defs[]")
            name = str(d["name"])
            if name in self._by_name:
                raise DefinitionError(f"{source}: duplicate definition {name}", record=name)
            record = Record(
                name=name,
                bases=_as_name_list(d.get("bases"), where=f"{source}:{name}:bases"),
                fields={k: v for k, v in d.items() if k not in ("name", "bases")},
                source=source,
            )
            self._defs.append(record)
            self._by_name[name] = record

    def derives_from(self, record: Record, base: str) -> bool:
        pending = list(record.bases)
        seen = set()
        while pending:
            name = pending.pop()
            if name == base:
                return True
            if name in seen:
                continue
            seen.add(name)
            pending.extend(self._class_bases.get(name, ()))
        return False

    def all_derived_definitions(self, base: str) -> List[Record]:
        return [r for r in self._defs if self.derives_from(r, base)]


# ---------------------------------------------------------------------------
# Operation definitions and placeholder classification
# ---------------------------------------------------------------------------


def _to_camel(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in name.split("_"))


@dataclass(frozen=True)
class Argument:
    name: str
    kind: str
    variadic: bool = False


def _parse_argument(item: Any, *, where: str) -> Argument:
    if isinstance(item, str):
        return Argument(item, OPERAND)
    _expect_type(item, dict, where=where)
    _require_keys(item, ["name"], where=where)
    kind = item.get("kind", OPERAND)
    if kind not in (OPERAND, ATTRIBUTE):
        raise DefinitionError(f"{where}:{item['name']}: kind must be '{OPERAND}' or '{ATTRIBUTE}'")
    variadic = item.get("variadic", False)
    if not isinstance(variadic, bool):
        raise DefinitionError(f"{where}:{item['name']}: variadic must be bool")
    if variadic and kind != OPERAND:
        raise DefinitionError(f"{where}:{item['name']}: only operands may be variadic")
    return Argument(str(item["name"]), kind, variadic)


def _parse_result(item: Any, *, where: str) -> str:
    if isinstance(item, dict):
        _require_keys(item, ["name"], where=where)
        item = item["name"]
    _expect_type(item, str, where=where)
    return item


@dataclass(frozen=True)
class OperationDefinition:
    record_name: str
    operation_name: str
    qual_cpp_class_name: str
    arguments: Tuple[Argument, ...]
    results: Tuple[str, ...]
    accessor_prefix: str = DEFAULT_ACCESSOR_PREFIX

    @property
    def operands(self) -> Tuple[Argument, ...]:
        return tuple(a for a in self.arguments if a.kind == OPERAND)

    @property
    def attributes(self) -> Tuple[Argument, ...]:
        return tuple(a for a in self.arguments if a.kind == ATTRIBUTE)

    def getter_name(self, name: str) -> str:
        if not self.accessor_prefix:
            return name
        return self.accessor_prefix + _to_camel(name)

    @classmethod
    def from_record(cls, record: Record) -> "OperationDefinition":
        where = f"{record.source}:{record.name}"

        op_name = record.get_string("opName", record.name)
        dialect = record.get_string("dialect", "")
        operation_name = f"{dialect}.{op_name}" if dialect else op_name

        class_name = record.get_string("cppClassName", record.name.split("_", 1)[-1])
        namespace = record.get_string("cppNamespace", DEFAULT_CPP_NAMESPACE)
        qual_name = f"{namespace}::{class_name}" if namespace else class_name

        arguments = tuple(
            _parse_argument(a, where=f"{where}:arguments") for a in record.get_list("arguments", [])
        )
        results = tuple(_parse_result(r, where=f"{where}:results") for r in record.get_list("results", []))

        operands = [a for a in arguments if a.kind == OPERAND]
        for i, operand in enumerate(operands):
            if operand.variadic and i != len(operands) - 1:
                raise StructuralViolation(
                    f"variadic operand '{operand.name}' of {operation_name} is not the last operand",
                    record=record.name,
                )
        for label, names in (
            (OPERAND, [a.name for a in operands]),
            (ATTRIBUTE, [a.name for a in arguments if a.kind == ATTRIBUTE]),
            ("result", list(results)),
        ):
            seen = set()
            for n in names:
                if n in seen:
                    raise StructuralViolation(
                        f"duplicate {label} name '{n}' in {operation_name}", record=record.name
                    )
                seen.add(n)

        return cls(
            record_name=record.name,
            operation_name=operation_name,
            qual_cpp_class_name=qual_name,
            arguments=arguments,
            results=results,
            accessor_prefix=record.get_string("accessorPrefix", DEFAULT_ACCESSOR_PREFIX),
        )


class ArgKind(Enum):
    OPERAND = "operand"
    VARIADIC_OPERAND = "variadic_operand"
    ATTRIBUTE = "attribute"
    RESULT = "result"
    KEYWORD = "keyword"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ArgRef:
    kind: ArgKind
    name: str
    # Position in `arguments` for operands and attributes, in `results` for results.
    index: int = -1


def classify(op: OperationDefinition, name: str, keywords: Mapping[str, str]) -> ArgRef:
    """
    Resolve a placeholder name against `op`.

    Operands win over attributes, attributes over results, and all of them over
    the keywords of the generation mode.
    """

    operands = op.operands
    for arg in operands:
        if arg.name == name:
            index = op.arguments.index(arg)
            if arg is operands[-1] and arg.variadic:
                return ArgRef(ArgKind.VARIADIC_OPERAND, name, index)
            return ArgRef(ArgKind.OPERAND, name, index)
    for arg in op.attributes:
        if arg.name == name:
            return ArgRef(ArgKind.ATTRIBUTE, name, op.arguments.index(arg))
    for index, result in enumerate(op.results):
        if result == name:
            return ArgRef(ArgKind.RESULT, name, index)
    if name in keywords:
        return ArgRef(ArgKind.KEYWORD, name)
    return ArgRef(ArgKind.UNKNOWN, name)


# ---------------------------------------------------------------------------
# Template expansion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Span:
    pos: int
    length: int

    @property
    def end(self) -> int:
        return self.pos + self.length

    def text(self, s: str) -> str:
        return s[self.pos : self.end]


def find_next_placeholder(template: str, start: int = 0) -> Optional[Span]:
    """
    Locate the next `$` placeholder at or after `start`.

    The span covers the marker and the following run of `[A-Za-z0-9_]`, or the
    two characters of a `$$` escape. A lone `$` gives a span of length 1.
    """

    pos = template.find(MARKER, start)
    if pos < 0:
        return None
    if template.startswith(MARKER, pos + 1):
        return Span(pos, 2)
    tail = _RE_NAME_TAIL.match(template, pos + 1)
    end = tail.end() if tail else pos + 1
    return Span(pos, end - pos)


@dataclass(frozen=True)
class BuilderMode:
    template_field: str
    keywords: Mapping[str, str]
    expressions: Mapping[ArgKind, str]
    guard: str
    guard_field: Optional[str] = None
    single_result: bool = False


LLVM_BUILDER_MODE = BuilderMode(
    template_field="llvmBuilder",
    keywords={
        "_resultType": "moduleTranslation.convertType(op.getResult().getType())",
        "_hasResult": "opInst.getNumResults() == 1",
        "_location": "opInst.getLoc()",
        "_numOperands": "opInst.getNumOperands()",
    },
    expressions={
        ArgKind.OPERAND: "moduleTranslation.lookupValue(op.{getter}())",
        ArgKind.VARIADIC_OPERAND: "moduleTranslation.lookupValues(op.{getter}())",
        ArgKind.ATTRIBUTE: "op.{getter}()",
        ArgKind.RESULT: "moduleTranslation.mapValue(op.{getter}())",
    },
    guard="if (auto op = dyn_cast<{qual_class_name}>(opInst)) {{",
)

# Arguments are mapped by position and assume the MLIR and LLVM operand orders
# match, with no optional or variadic arguments.
MLIR_BUILDER_MODE = BuilderMode(
    template_field="mlirBuilder",
    keywords={
        "_int_attr": "matchIntegerAttr",
        "_resultType": "convertType(inst->getType())",
        "_location": "translateLoc(inst->getDebugLoc())",
        "_builder": "odsBuilder",
        "_qualCppClassName": "{qual_class_name}",
    },
    expressions={
        ArgKind.OPERAND: "processValue(llvmOperands[{index}])",
        ArgKind.VARIADIC_OPERAND: "processValue(llvmOperands[{index}])",
        ArgKind.ATTRIBUTE: "processValue(llvmOperands[{index}])",
        ArgKind.RESULT: "mapValue(inst)",
    },
    guard="if (intrinsicID == llvm::Intrinsic::{guard_value}) {{",
    guard_field="llvmEnumName",
    single_result=True,
)


def _render_placeholder(op: OperationDefinition, name: str, mode: BuilderMode) -> str:
    ref = classify(op, name, mode.keywords)
    if ref.kind is ArgKind.UNKNOWN:
        raise UnclassifiablePlaceholder(name, op.operation_name, record=op.record_name)
    if ref.kind is ArgKind.KEYWORD:
        return mode.keywords[name].format(qual_class_name=op.qual_cpp_class_name)
    if ref.kind is ArgKind.RESULT and mode.single_result and len(op.results) != 1:
        raise StructuralViolation(
            f"{op.operation_name}: expected exactly one result to map {MARKER}{name}, got {len(op.results)}",
            record=op.record_name,
        )
    return mode.expressions[ref.kind].format(getter=op.getter_name(name), index=ref.index)


def substitute(op: OperationDefinition, template: str, mode: BuilderMode) -> str:
    """Replace every placeholder of `template`, keeping the literal text around them."""

    out: List[str] = []
    pos = 0
    while True:
        span = find_next_placeholder(template, pos)
        if span is None:
            break
        out.append(template[pos : span.pos])
        name = span.text(template)[1:]
        if name == MARKER:
            out.append(MARKER)
        elif name == "":
            # A lone `$` never names anything, even an unnamed argument or result.
            raise UnclassifiablePlaceholder("", op.operation_name, record=op.record_name)
        else:
            out.append(_render_placeholder(op, name, mode))
        pos = span.end
    out.append(template[pos:])
    return "".join(out)


def expand(op: OperationDefinition, template: str, mode: BuilderMode, *, guard_value: str = "") -> str:
    body = substitute(op, template, mode)
    guard = mode.guard.format(qual_class_name=op.qual_cpp_class_name, guard_value=guard_value)
    return f"{guard}\n{body}\n  return success();\n}}\n"


def emit_one_builder(record: Record, mode: BuilderMode) -> str:
    op = OperationDefinition.from_record(record)
    if not record.has_field(mode.template_field):
        raise MissingTemplateField(
            f"no '{mode.template_field}' field for op {op.operation_name}", record=record.name
        )
    template = record.get_string(mode.template_field)
    if template == "":
        return ""
    guard_value = record.get_string(mode.guard_field) if mode.guard_field else ""
    return expand(op, template, mode, guard_value=guard_value)


# ---------------------------------------------------------------------------
# Enum conversions
# ---------------------------------------------------------------------------


class EnumFlavor(Enum):
    SYMBOLIC = "symbolic"
    INTEGER = "integer"


@dataclass(frozen=True)
class EnumCase:
    symbol: str
    enumerant: Union[str, int]


@dataclass(frozen=True)
class EnumDefinition:
    record_name: str
    class_name: str
    cpp_namespace: str
    llvm_class_name: str
    flavor: EnumFlavor
    cases: Tuple[EnumCase, ...]

    @property
    def domain_type(self) -> str:
        return f"{self.cpp_namespace}::{self.class_name}"

    @property
    def external_type(self) -> str:
        if self.flavor is EnumFlavor.INTEGER:
            return "int64_t"
        return self.llvm_class_name

    def domain_value(self, case: EnumCase) -> str:
        return f"{self.domain_type}::{case.symbol}"

    def external_value(self, case: EnumCase) -> str:
        if isinstance(case.enumerant, int):
            return f"static_cast<int64_t>({case.enumerant})"
        value = f"{self.llvm_class_name}::{case.enumerant}"
        if self.flavor is EnumFlavor.INTEGER:
            return f"static_cast<int64_t>({value})"
        return value

    @classmethod
    def from_record(cls, record: Record, flavor: EnumFlavor) -> "EnumDefinition":
        where = f"{record.source}:{record.name}:cases"
        cases: List[EnumCase] = []
        seen = set()
        for item in record.get_list("cases"):
            _expect_type(item, dict, where=where)
            _require_keys(item, ["symbol", "llvmEnumerant"], where=where)
            symbol = item["symbol"]
            enumerant = item["llvmEnumerant"]
            _expect_type(symbol, str, where=f"{where}:symbol")
            if isinstance(enumerant, bool) or not isinstance(enumerant, (str, int)):
                raise DefinitionError(f"{where}:{symbol}: llvmEnumerant must be a name or an integer")
            if isinstance(enumerant, int) and flavor is not EnumFlavor.INTEGER:
                raise DefinitionError(f"{where}:{symbol}: integer llvmEnumerant needs a C-style enum")
            if symbol in seen:
                raise StructuralViolation(f"{record.name}: duplicate enum case {symbol}", record=record.name)
            seen.add(symbol)
            cases.append(EnumCase(symbol, enumerant))
        if not cases:
            raise StructuralViolation(f"{record.name}: enum has no cases", record=record.name)

        return cls(
            record_name=record.name,
            class_name=record.get_string("className"),
            cpp_namespace=record.get_string("cppNamespace", DEFAULT_CPP_NAMESPACE),
            llvm_class_name=record.get_string("llvmClassName"),
            flavor=flavor,
            cases=tuple(cases),
        )


def _emit_switch(signature: str, arms: Sequence[Tuple[str, str]], unknown: str) -> str:
    out: List[str] = [signature, "  switch (value) {"]
    for label, value in arms:
        out.append(f"  case {label}:")
        out.append(f"    return {value};")
    out.append("  }")
    out.append(f'  llvm_unreachable("unknown {unknown} type");')
    out.append("}")
    out.append("")
    return "\n".join(out) + "\n"


def emit_enum_to_conversion(enum: EnumDefinition) -> str:
    signature = (
        f"static LLVM_ATTRIBUTE_UNUSED {enum.external_type} "
        f"convert{enum.class_name}ToLLVM({enum.domain_type} value) {{"
    )
    arms = [(enum.domain_value(c), enum.external_value(c)) for c in enum.cases]
    return _emit_switch(signature, arms, enum.class_name)


def emit_enum_from_conversion(enum: EnumDefinition) -> str:
    signature = (
        f"inline LLVM_ATTRIBUTE_UNUSED {enum.domain_type} "
        f"convert{enum.class_name}FromLLVM({enum.external_type} value) {{"
    )
    arms = [(enum.external_value(c), enum.domain_value(c)) for c in enum.cases]
    return _emit_switch(signature, arms, enum.llvm_class_name)


def emit_one_intrinsic(record: Record) -> str:
    return f"llvm::Intrinsic::{record.get_string('llvmEnumName')},\n"


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


def _report_error(err: GenError) -> None:
    where = f"{err.record}: " if err.record and not str(err).startswith(err.record) else ""
    print(f"{TOOL_NAME}: ERROR: {where}{err}", file=sys.stderr)


def _emit_each(
    records: Iterable[Record],
    emit_one: Callable[[Record], str],
    out: TextIO,
    *,
    keep_going: bool,
) -> bool:
    ok = True
    for record in records:
        try:
            text = emit_one(record)
        except GenError as e:
            _report_error(e)
            ok = False
            if not keep_going:
                return False
            continue
        out.write(text)
    return ok


def emit_builders(records: RecordKeeper, out: TextIO, *, keep_going: bool = False) -> bool:
    emit_one = functools.partial(emit_one_builder, mode=LLVM_BUILDER_MODE)
    return _emit_each(records.all_derived_definitions(OP_BASE), emit_one, out, keep_going=keep_going)


def emit_intr_builders(records: RecordKeeper, out: TextIO, *, keep_going: bool = False) -> bool:
    emit_one = functools.partial(emit_one_builder, mode=MLIR_BUILDER_MODE)
    return _emit_each(records.all_derived_definitions(INTR_OP_BASE), emit_one, out, keep_going=keep_going)


def _emit_one_enum(record: Record, *, emit: Callable[[EnumDefinition], str], flavor: EnumFlavor) -> str:
    return emit(EnumDefinition.from_record(record, flavor))


def _emit_enum_conversions(
    records: RecordKeeper, out: TextIO, emit: Callable[[EnumDefinition], str], *, keep_going: bool
) -> bool:
    ok = True
    for base, flavor in ((ENUM_ATTR_BASE, EnumFlavor.SYMBOLIC), (CENUM_ATTR_BASE, EnumFlavor.INTEGER)):
        emit_one = functools.partial(_emit_one_enum, emit=emit, flavor=flavor)
        if not _emit_each(records.all_derived_definitions(base), emit_one, out, keep_going=keep_going):
            ok = False
            if not keep_going:
                return False
    return ok


def emit_enum_to_llvm(records: RecordKeeper, out: TextIO, *, keep_going: bool = False) -> bool:
    return _emit_enum_conversions(records, out, emit_enum_to_conversion, keep_going=keep_going)


def emit_enum_from_llvm(records: RecordKeeper, out: TextIO, *, keep_going: bool = False) -> bool:
    return _emit_enum_conversions(records, out, emit_enum_from_conversion, keep_going=keep_going)


def emit_convertible_intrinsics(records: RecordKeeper, out: TextIO, *, keep_going: bool = False) -> bool:
    return _emit_each(records.all_derived_definitions(INTR_OP_BASE), emit_one_intrinsic, out, keep_going=keep_going)


@dataclass(frozen=True)
class GenRegistration:
    arg: str
    description: str
    function: Callable[..., bool]
    # Classes whose derived definitions the generator visits.
    bases: Tuple[str, ...] = ()

    def count_definitions(self, records: RecordKeeper) -> int:
        return sum(len(records.all_derived_definitions(base)) for base in self.bases)


GENERATORS: Tuple[GenRegistration, ...] = (
    GenRegistration("gen-llvmir-conversions", "Generate LLVM IR conversions", emit_builders, (OP_BASE,)),
    GenRegistration(
        "gen-intr-from-llvmir-conversions",
        "Generate intrinsic conversions from LLVM IR",
        emit_intr_builders,
        (INTR_OP_BASE,),
    ),
    GenRegistration(
        "gen-enum-to-llvmir-conversions",
        "Generate conversions of EnumAttrs to LLVM IR",
        emit_enum_to_llvm,
        (ENUM_ATTR_BASE, CENUM_ATTR_BASE),
    ),
    GenRegistration(
        "gen-enum-from-llvmir-conversions",
        "Generate conversions of EnumAttrs from LLVM IR",
        emit_enum_from_llvm,
        (ENUM_ATTR_BASE, CENUM_ATTR_BASE),
    ),
    GenRegistration(
        "gen-convertible-llvmir-intrinsics",
        "Generate list of convertible LLVM IR intrinsics",
        emit_convertible_intrinsics,
        (INTR_OP_BASE,),
    ),
)


def find_generator(arg: str) -> Optional[GenRegistration]:
    for reg in GENERATORS:
        if reg.arg == arg:
            return reg
    return None


def generate(arg: str, records: RecordKeeper, *, keep_going: bool = False) -> Optional[str]:
    reg = find_generator(arg)
    if reg is None:
        raise GenError(f"unknown generator {arg!r}")
    out = io.StringIO()
    if not reg.function(records, out, keep_going=keep_going):
        return None
    return out.getvalue()


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="\n") as f:
        f.write(text)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog=TOOL_NAME,
        description="Generate LLVM IR conversion code from operation and enum definitions.",
    )
    parser.add_argument("inputs", nargs="*", help="Definition files (.json, or .yaml in the repo's YAML subset).")
    parser.add_argument(
        "--gen",
        choices=[reg.arg for reg in GENERATORS],
        default=None,
        help="Generator to run (see --list).",
    )
    parser.add_argument("-o", "--out", default="-", help="Output file (defaults to stdout).")
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Skip failing definitions instead of stopping at the first one.",
    )
    parser.add_argument("--verbose", action="store_true", help="Print notes about loaded definitions.")
    parser.add_argument("--list", action="store_true", help="List the available generators and exit.")
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.list:
        for reg in GENERATORS:
            print(f"{reg.arg:36} {reg.description}")
        return 0
    if args.gen is None:
        parser.error("--gen is required")
    if not args.inputs:
        parser.error("at least one definition file is required")

    try:
        records = RecordKeeper.from_paths(Path(p) for p in args.inputs)
    except GenError as e:
        _report_error(e)
        return 2
    if args.verbose:
        print(f"{TOOL_NAME}: note: loaded {len(records)} definitions from {len(args.inputs)} file(s)", file=sys.stderr)
        reg = find_generator(args.gen)
        if reg is not None:
            print(
                f"{TOOL_NAME}: note: {args.gen}: {reg.count_definitions(records)} matching definitions",
                file=sys.stderr,
            )

    text = generate(args.gen, records, keep_going=args.keep_going)
    if text is None:
        return 1
    if args.verbose:
        print(f"{TOOL_NAME}: note: {args.gen}: wrote {len(text.splitlines())} lines", file=sys.stderr)

    if args.out == "-":
        sys.stdout.write(text)
    else:
        _write_text(Path(args.out), text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
