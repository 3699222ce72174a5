"""Two-pass assembler turning Y86-64 assembly (.ys) into object text (.yo)."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional, Sequence, Union

from .isa import (
    BAD_INSTRUCTION,
    INSTRUCTION_SET,
    ArgType,
    Register,
    find_instr,
    find_register,
    hpack,
    to_signed,
)

TOK_PER_LINE = 12
STRMAX = 4096


class TokenType(IntEnum):
    IDENT = 0
    NUM = 1
    REG = 2
    INSTR = 3
    PUNCT = 4
    ERR = 5


@dataclass(frozen=True)
class Token:
    """One lexical token of an assembly line."""

    type: TokenType
    sval: Optional[str] = None
    ival: int = 0
    cval: str = " "


class AssemblyError(Exception):
    """Raised when assembly fails; carries the error reports and any output made."""

    def __init__(self, errors: Sequence[str], output: str = ""):
        super().__init__("\n".join(errors))
        self.errors = list(errors)
        self.output = output


_ERR_TOKEN = Token(TokenType.ERR)

_LEX_INSTRS = frozenset(
    i.name for i in INSTRUCTION_SET if i.name != "pop2"
) | {".pos", ".align"}

_TOKEN_RE = re.compile(
    r"""
     (?P<space>[ \t\r\n\v\f]+)
    |(?P<comment>\#.*)
    |(?P<open>/\*)
    |(?P<hex>\$?0[xX][0-9a-fA-F]+)
    |(?P<dec>\$?-?[0-9]+)
    |(?P<reg>%[A-Za-z0-9]+)
    |(?P<word>\.?[A-Za-z][A-Za-z0-9_]*)
    |(?P<punct>[():,])
    """,
    re.VERBOSE | re.ASCII,
)


class _Lexer:
    """Splits lines into tokens; remembers whether a block comment is open."""

    def __init__(self):
        self.in_comment = False

    def tokens(self, line: str) -> list[Token]:
        result: list[Token] = []
        pos = 0
        while pos < len(line):
            if self.in_comment:
                end = line.find("*/", pos)
                if end < 0:
                    return result
                self.in_comment = False
                pos = end + 2
                continue
            match = _TOKEN_RE.match(line, pos)
            if match is None:
                result.append(_ERR_TOKEN)
                return result
            pos = match.end()
            kind, text = match.lastgroup, match.group()
            if kind == "space":
                continue
            if kind == "comment":
                return result
            if kind == "open":
                self.in_comment = True
            elif kind == "hex":
                result.append(Token(TokenType.NUM, ival=to_signed(int(text.lstrip("$")[2:], 16))))
            elif kind == "dec":
                result.append(Token(TokenType.NUM, ival=to_signed(int(text.lstrip("$")))))
            elif kind == "reg":
                if find_register(text) == Register.ERR:
                    result.append(_ERR_TOKEN)
                    return result
                result.append(Token(TokenType.REG, sval=text))
            elif kind == "word":
                if text in _LEX_INSTRS:
                    result.append(Token(TokenType.INSTR, sval=text))
                elif text.startswith("."):
                    result.append(_ERR_TOKEN)
                    return result
                else:
                    result.append(Token(TokenType.IDENT, sval=text))
            else:
                result.append(Token(TokenType.PUNCT, cval=text))
        return result


def tokenize_line(line: str) -> list[Token]:
    """Tokenize one line; an invalid character ends the list with an ERR token."""
    return _Lexer().tokens(line)


def _cdiv(num: int, den: int) -> int:
    quotient = abs(num) // abs(den)
    return quotient if (num < 0) == (den < 0) else -quotient


class Assembler:
    """Assembles source in two passes: the first collects labels, the second emits code."""

    def __init__(self, vcode: bool = False, block_factor: int = 0):
        self.vcode = vcode
        self.block_factor = block_factor
        self.symbols: dict[str, int] = {}
        self.errors: list[str] = []
        self._reset_pass(1)

    def _reset_pass(self, number: int) -> None:
        self._pass = number
        self._lineno = 0
        self._bytepos = 0
        self._error_mode = False
        self._input_line = ""
        self._tokens: list[Token] = []
        self._tpos = 0
        self._code = bytearray(10)
        self._bcount = 0
        self._out: list[str] = []

    def assemble(self, source: Union[str, Iterable[str]]) -> str:
        """Return the object text for the source, or raise AssemblyError."""
        lines = source.splitlines(True) if isinstance(source, str) else list(source)
        self.symbols = {}
        self.errors = []
        self._run_pass(1, lines)
        if self.errors:
            raise AssemblyError(self.errors)
        output = self._run_pass(2, lines)
        if self.errors:
            raise AssemblyError(self.errors, output)
        return output

    def _run_pass(self, number: int, lines: list[str]) -> str:
        self._reset_pass(number)
        lexer = _Lexer()
        for self._lineno, raw in enumerate(lines, 1):
            self._error_mode = False
            self._input_line = raw.rstrip("\r\n")
            if len(raw) >= STRMAX:
                self._fail("Input Line too long")
                continue
            tokens = lexer.tokens(raw)
            if len(tokens) > TOK_PER_LINE - 1:
                self._fail("Line too long")
                tokens = tokens[:TOK_PER_LINE - 1]
            if tokens and tokens[-1].type is TokenType.ERR:
                self._fail("Invalid line")
            if not raw.endswith(("\n", "\r")):
                if tokens:
                    self._fail("Missing end-of-line on final line")
                continue
            self._finish_line(tokens)
        return "".join(self._out)

    def _fail(self, message: str) -> None:
        if not self._error_mode:
            self.errors.append(
                f"Error on line {self._lineno}: {message}\n"
                f"Line {self._lineno}, Byte 0x{self._bytepos & 0xFFFFFFFF:04x}: "
                f"{self._input_line}"
            )
        self._error_mode = True

    def _tok(self) -> Token:
        if self._tpos < len(self._tokens):
            return self._tokens[self._tpos]
        return _ERR_TOKEN

    def _finish_line(self, tokens: list[Token]) -> None:
        save = self._bytepos
        self._tokens = tokens
        self._tpos = 0
        self._code = bytearray(10)
        self._bcount = 0
        second = self._pass > 1
        if not tokens:
            if second:
                self._print_code(save)
            return
        if self._error_mode:
            return

        if tokens[0].type is TokenType.IDENT:
            self._tpos = 1
            colon = self._tok()
            if colon.type is not TokenType.PUNCT or colon.cval != ":":
                self._fail("Missing Colon")
                return
            if not second:
                self.symbols.setdefault(tokens[0].sval, self._bytepos)
            self._tpos = 2
            if len(tokens) == 2:
                if second:
                    self._print_code(save)
                return

        token = self._tok()
        if token.type is not TokenType.INSTR:
            self._fail("Bad Instruction")
            return
        if token.sval == ".pos":
            self._tpos += 1
            arg = self._tok()
            if arg.type is not TokenType.NUM:
                self._fail("Invalid Address")
                return
            self._bytepos = arg.ival
            if second:
                self._print_code(self._bytepos)
            return
        if token.sval == ".align":
            self._tpos += 1
            arg = self._tok()
            if arg.type is not TokenType.NUM or arg.ival <= 0:
                self._fail("Invalid Alignment")
                return
            align = arg.ival
            self._bytepos = _cdiv(self._bytepos + align - 1, align) * align
            if second:
                self._print_code(self._bytepos)
            return

        instr = find_instr(token.sval)
        self._tpos += 1
        if instr is None:
            self._fail("Invalid Instruction")
            instr = BAD_INSTRUCTION
        self._bytepos += instr.size
        self._bcount = instr.size
        if not second:
            return

        self._code[0] = instr.code
        self._code[1] = hpack(Register.NONE, Register.NONE)
        self._get_arg(instr.arg1, instr.arg1pos, instr.arg1hi)
        if instr.arg2 != ArgType.NO_ARG:
            comma = self._tok()
            if comma.type is not TokenType.PUNCT or comma.cval != ",":
                self._fail("Expecting Comma")
                return
            self._tpos += 1
            self._get_arg(instr.arg2, instr.arg2pos, instr.arg2hi)
        self._print_code(save)

    def _get_arg(self, kind: ArgType, pos: int, hi: int) -> None:
        if kind == ArgType.R_ARG:
            self._get_reg(pos, hi)
        elif kind == ArgType.M_ARG:
            self._get_mem(pos)
        elif kind == ArgType.I_ARG:
            self._get_num(pos, hi)

    def _get_reg(self, pos: int, hi: int) -> None:
        token = self._tok()
        if token.type is not TokenType.REG:
            self._fail("Expecting Register ID")
            return
        rval = find_register(token.sval) & 0xF
        c = self._code[pos]
        self._code[pos] = ((c & 0x0F) | (rval << 4)) if hi else ((c & 0xF0) | rval)
        self._tpos += 1

    def _get_num(self, pos: int, nbytes: int) -> None:
        token = self._tok()
        if token.type is TokenType.NUM:
            val = token.ival
        elif token.type is TokenType.IDENT:
            val = self._find_symbol(token.sval)
        else:
            self._fail("Number Expected")
            return
        mask = (1 << (8 * nbytes)) - 1
        self._code[pos:pos + nbytes] = (val & mask).to_bytes(nbytes, "little")
        self._tpos += 1

    def _get_mem(self, pos: int) -> None:
        rval = int(Register.NONE)
        val = 0
        token = self._tok()
        if token.type is TokenType.NUM:
            val = token.ival
            self._tpos += 1
        elif token.type is TokenType.IDENT:
            val = self._find_symbol(token.sval)
            self._tpos += 1
        token = self._tok()
        if token.type is TokenType.PUNCT and token.cval == "(":
            self._tpos += 1
            token = self._tok()
            if token.type is not TokenType.REG:
                self._fail("Expecting Register Id")
                return
            rval = find_register(token.sval)
            self._tpos += 1
            token = self._tok()
            if token.type is not TokenType.PUNCT or token.cval != ")":
                self._fail("Expecting ')'")
                return
            self._tpos += 1
        self._code[pos] = (self._code[pos] & 0xF0) | (rval & 0xF)
        self._code[pos + 1:pos + 9] = (val & ((1 << 64) - 1)).to_bytes(8, "little")

    def _find_symbol(self, name: str) -> int:
        if name in self.symbols:
            return self.symbols[name]
        self._fail("Can't find label")
        return -1

    def _print_code(self, pos: int) -> None:
        has_tokens = bool(self._tokens)
        code_hex = self._code[:self._bcount].hex()
        if pos > 0xFFF:
            if has_tokens:
                if pos > 0xFFFF:
                    self._fail("Code address limit exceeded")
                    raise AssemblyError(self.errors, "".join(self._out))
                prefix = f"0x{pos:04x}:{code_hex:<20}  | "
            else:
                prefix = " " * 29 + "| "
        elif has_tokens:
            prefix = f"0x{pos & 0xFFF:03x}: {code_hex:<20} | "
        else:
            prefix = " " * 28 + "| "

        if not self.vcode:
            self._out.append(f"{prefix}{self._input_line}\n")
            return
        self._out.append(f"//{prefix}{self._input_line}\n")
        if has_tokens:
            for i, byte in enumerate(self._code[:self._bcount]):
                addr = pos + i
                if self.block_factor:
                    self._out.append(
                        f"    bank{addr % self.block_factor}[{addr // self.block_factor}]"
                        f" = 8'h{byte:02x};\n"
                    )
                else:
                    self._out.append(f"    mem[{addr}] = 8'h{byte:02x};\n")


def assemble(source: Union[str, Iterable[str]]) -> str:
    """Assemble source text into object text."""
    return Assembler().assemble(source)


_INT_PREFIX = re.compile(r"\s*[+-]?\d+")


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group()) if match else 0


def _usage() -> int:
    print("Usage: yas [-V[n]] file.ys")
    print("   -V[n]  Generate memory initialization in Verilog format (n-way blocking)")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        return _usage()
    vcode = False
    block_factor = 0
    if args[0].startswith("-"):
        if args[0][1:2] != "V":
            return _usage()
        vcode = True
        if len(args[0]) > 2:
            block_factor = _atoi(args[0][2:])
            if block_factor != 8:
                print(f"Unknown blocking factor {block_factor}", file=sys.stderr)
                return 1
        args.pop(0)
    if not args or not args[0].endswith(".ys"):
        return _usage()
    root = args[0][:-3]
    if len(root) > 500:
        print("File name too long", file=sys.stderr)
        return 1
    infname = root + ".ys"
    try:
        with open(infname, "r") as infile:
            source = infile.readlines()
    except OSError:
        print(f"Can't open input file '{infname}'", file=sys.stderr)
        return 1

    failed = False
    try:
        text = Assembler(vcode, block_factor).assemble(source)
    except AssemblyError as exc:
        failed = True
        text = exc.output
        for error in exc.errors:
            print(error, file=sys.stderr)

    if vcode:
        sys.stdout.write(text)
    else:
        outfname = root + ".yo"
        try:
            with open(outfname, "w") as outfile:
                outfile.write(text)
        except OSError:
            print(f"Can't open output file '{outfname}'", file=sys.stderr)
            return 1
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())