#!/usr/bin/env python3
"""
exprcc.py
Single-file expression compiler pipeline (tokenizer → recursive-descent parser
→ stack-machine x86-64 code generation + evaluator).

Input is one arithmetic expression (integers, + - * /, parentheses and
== != < <= > >=); output is an Intel-syntax listing of a `main` function that
returns the value of the expression.
"""

import os
import re
import sys
from collections import namedtuple

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
IMM32_MAX = (1 << 31) - 1
MAX_DIGITS = len(str(INT64_MAX))
NESTING_MSG = "expression nested too deeply"

# =====================================================
# DIAGNOSTICS
# =====================================================
class CompileError(Exception):
    def __init__(self, phase, msg, pos=None):
        super().__init__(msg)
        self.phase = phase  # 'Usage' | 'Lexical' | 'Syntax' | 'Runtime'
        self.msg = msg
        self.pos = pos

    def __str__(self):
        if self.pos is not None:
            return f"{self.phase} error (col {self.pos}): {self.msg}"
        return f"{self.phase} error: {self.msg}"

def error(phase, msg, pos=None):
    raise CompileError(phase, msg, pos)

def format_diagnostic(source, err):
    """
    Render an error the way the terminal driver prints it: the source line,
    a caret under the offending column, then the message. Errors without a
    position (or without a source) render as the bare message.
    """
    if err.pos is None or source is None:
        return err.msg
    start = source.rfind('\n', 0, err.pos) + 1
    end = source.find('\n', err.pos)
    if end == -1:
        end = len(source)
    return f"{source[start:end]}\n{' ' * (err.pos - start)}^ {err.msg}"

# =====================================================
# TOKENIZER
# =====================================================
TK_RESERVED = 'RESERVED'
TK_NUM = 'NUM'
TK_EOF = 'EOF'

class Token(namedtuple('Token', ['kind', 'text', 'pos', 'value'])):
    __slots__ = ()

    @property
    def length(self):
        return len(self.text)

    def describe(self):
        if self.kind == TK_EOF:
            return "end of input"
        return f"'{self.text}'"

class Lexer:
    # alternatives are tried in order; two-char operators come before their one-char prefixes
    token_specification = [
        ("RESERVED",  r'==|!=|<=|>=|[-+*/()<>]'),
        ("NUM",       r'\d+'),
        ("SKIP",      r'\s+'),
        ("MISMATCH",  r'.'),
    ]
    tok_regex = '|'.join(f'(?P<{n}>{p})' for n,p in token_specification)
    master_re = re.compile(tok_regex, re.ASCII | re.DOTALL)

    def __init__(self, code):
        self.code = code
        self.tokens = []

    def tokenize(self):
        for mo in self.master_re.finditer(self.code):
            kind = mo.lastgroup
            val = mo.group()
            if kind == "RESERVED":
                self.tokens.append(Token(TK_RESERVED, val, mo.start(), None))
            elif kind == "NUM":
                self.tokens.append(Token(TK_NUM, val, mo.start(), self.number_value(val, mo.start())))
            elif kind == "MISMATCH":
                error("Lexical", f"unexpected character {val!r}", mo.start())
        self.tokens.append(Token(TK_EOF, '', len(self.code), None))
        return self.tokens

    def number_value(self, text, start):
        # length check first: int() refuses very long digit strings
        digits = text.lstrip('0') or '0'
        if len(digits) > MAX_DIGITS or int(digits) > INT64_MAX:
            error("Lexical", "number too large", start)
        return int(digits)

def tokenize(code):
    return Lexer(code).tokenize()

# =====================================================
# AST NODES
# =====================================================
ND_ADD = 'add'
ND_SUB = 'sub'
ND_MUL = 'mul'
ND_DIV = 'div'
ND_EQ = 'eq'
ND_NE = 'ne'
ND_LT = 'lt'
ND_LE = 'le'
ND_NUM = 'num'

class Node:
    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    __hash__ = None

class BinaryOp(Node):
    def __init__(self, kind, left, right):
        self.kind = kind
        self.left = left
        self.right = right

    def __repr__(self):
        return f"BinaryOp({self.kind!r}, {self.left!r}, {self.right!r})"

class Number(Node):
    def __init__(self, value):
        self.kind = ND_NUM
        self.value = value

    def __repr__(self):
        return f"Number({self.value})"

# =====================================================
# PARSER (recursive-descent, one method per precedence level)
# =====================================================
class Parser:
    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0

    def peek(self):
        return self.tokens[self.pos]

    def advance(self):
        tok = self.peek()
        if tok.kind != TK_EOF:
            self.pos += 1
        return tok

    def consume(self, op):
        tok = self.peek()
        # compare the whole text, so '<' never matches the head of '<='
        if tok.kind != TK_RESERVED or tok.text != op:
            return False
        self.advance()
        return True

    def expect(self, op):
        tok = self.peek()
        if tok.kind != TK_RESERVED or tok.text != op:
            error("Syntax", f"expected '{op}' but got {tok.describe()}", tok.pos)
        return self.advance()

    def expect_number(self):
        tok = self.peek()
        if tok.kind != TK_NUM:
            error("Syntax", "expected a number", tok.pos)
        self.advance()
        return tok.value

    def at_eof(self):
        return self.peek().kind == TK_EOF

    def parse(self):
        try:
            node = self.expression()
        except RecursionError:
            error("Syntax", NESTING_MSG, self.peek().pos)
        if not self.at_eof():
            tok = self.peek()
            error("Syntax", f"unexpected trailing input {tok.describe()}", tok.pos)
        return node

    # expr = equality
    def expression(self):
        return self.equality()

    # equality = relational ("==" relational | "!=" relational)*
    def equality(self):
        node = self.relational()
        while True:
            if self.consume('=='):
                node = BinaryOp(ND_EQ, node, self.relational())
            elif self.consume('!='):
                node = BinaryOp(ND_NE, node, self.relational())
            else:
                return node

    # relational = add ("<" add | "<=" add | ">" add | ">=" add)*
    def relational(self):
        node = self.additive()
        while True:
            if self.consume('<'):
                node = BinaryOp(ND_LT, node, self.additive())
            elif self.consume('<='):
                node = BinaryOp(ND_LE, node, self.additive())
            elif self.consume('>'):
                node = BinaryOp(ND_LT, self.additive(), node)
            elif self.consume('>='):
                node = BinaryOp(ND_LE, self.additive(), node)
            else:
                return node

    # add = mul ("+" mul | "-" mul)*
    def additive(self):
        node = self.multiplicative()
        while True:
            if self.consume('+'):
                node = BinaryOp(ND_ADD, node, self.multiplicative())
            elif self.consume('-'):
                node = BinaryOp(ND_SUB, node, self.multiplicative())
            else:
                return node

    # mul = unary ("*" unary | "/" unary)*
    def multiplicative(self):
        node = self.unary()
        while True:
            if self.consume('*'):
                node = BinaryOp(ND_MUL, node, self.unary())
            elif self.consume('/'):
                node = BinaryOp(ND_DIV, node, self.unary())
            else:
                return node

    # unary = ("+" | "-")? primary
    def unary(self):
        if self.consume('+'):
            return self.unary()
        if self.consume('-'):
            return BinaryOp(ND_SUB, Number(0), self.unary())
        return self.primary()

    # primary = "(" expr ")" | num
    def primary(self):
        if self.consume('('):
            node = self.expression()
            self.expect(')')
            return node
        return Number(self.expect_number())

def parse(tokens):
    return Parser(tokens).parse()

# =====================================================
# CODE GENERATION (stack machine, rax = left, rdi = right)
# =====================================================
SETCC = {ND_EQ: 'sete', ND_NE: 'setne', ND_LT: 'setl', ND_LE: 'setle'}

class CodeGenerator:
    def __init__(self):
        self.asm = []

    def emit(self, line):
        self.asm.append(f"  {line}")

    def gen(self, node):
        if node.kind == ND_NUM:
            if node.value > IMM32_MAX:
                self.emit(f"mov rax, {node.value}")
                self.emit("push rax")
            else:
                self.emit(f"push {node.value}")
            return self.asm

        self.gen(node.left)
        self.gen(node.right)

        self.emit("pop rdi")
        self.emit("pop rax")

        if node.kind == ND_ADD:
            self.emit("add rax, rdi")
        elif node.kind == ND_SUB:
            self.emit("sub rax, rdi")
        elif node.kind == ND_MUL:
            self.emit("imul rax, rdi")
        elif node.kind == ND_DIV:
            self.emit("cqo")
            self.emit("idiv rdi")
        elif node.kind in SETCC:
            self.emit("cmp rax, rdi")
            self.emit(f"{SETCC[node.kind]} al")
            self.emit("movzx rax, al")
        else:
            raise ValueError(f"unknown node kind {node.kind!r}")

        self.emit("push rax")
        return self.asm

def generate(node):
    return CodeGenerator().gen(node)

def emit_program(node):
    lines = [".intel_syntax noprefix", ".globl main", "main:"]
    lines.extend(generate(node))
    lines.append("  pop rax")
    lines.append("  ret")
    return lines

# =====================================================
# EVALUATOR (what the generated main() leaves in rax)
# =====================================================
def wrap64(x):
    x &= (1 << 64) - 1
    return x - (1 << 64) if x > INT64_MAX else x

def evaluate(node):
    if node.kind == ND_NUM:
        return node.value

    a = evaluate(node.left)
    b = evaluate(node.right)
    if node.kind == ND_ADD:
        return wrap64(a + b)
    if node.kind == ND_SUB:
        return wrap64(a - b)
    if node.kind == ND_MUL:
        return wrap64(a * b)
    if node.kind == ND_DIV:
        if b == 0:
            error("Runtime", "division by zero")
        if a == INT64_MIN and b == -1:
            error("Runtime", "division overflow")
        q = abs(a) // abs(b)
        return q if (a < 0) == (b < 0) else -q
    if node.kind == ND_EQ:
        return int(a == b)
    if node.kind == ND_NE:
        return int(a != b)
    if node.kind == ND_LT:
        return int(a < b)
    if node.kind == ND_LE:
        return int(a <= b)
    raise ValueError(f"unknown node kind {node.kind!r}")

# =====================================================
# COMPILER DRIVER
# =====================================================
def compile_source(code, verbose=False):
    result = {
        'tokens': [],
        'ast': None,
        'asm': [],
        'output': None,
        'errors': [],
        'error': None,
    }

    try:
        toks = tokenize(code)
        result['tokens'] = toks
        if verbose:
            print("TOKENS:", ' '.join(t.text or '<EOF>' for t in toks), file=sys.stderr)

        ast = parse(toks)
        result['ast'] = ast
        if verbose:
            print("AST:", repr(ast), file=sys.stderr)

        result['asm'] = emit_program(ast)
        if verbose:
            print("ASM:", *result['asm'], sep='\n', file=sys.stderr)
    except RecursionError:
        e = CompileError("Syntax", NESTING_MSG)
        result['errors'] = [str(e)]
        result['error'] = e
        result['asm'] = []
        return result
    except CompileError as e:
        result['errors'] = [str(e)]
        result['error'] = e
        result['asm'] = []
        return result

    # the listing is valid even when the expression would trap at run time
    try:
        result['output'] = evaluate(ast)
    except RecursionError:
        e = CompileError("Runtime", NESTING_MSG)
        result['errors'] = [str(e)]
        result['error'] = e
    except CompileError as e:
        result['errors'] = [str(e)]
        result['error'] = e

    return result

def verbose_enabled():
    flag = os.environ.get('EXPRCC_VERBOSE', '')
    return flag not in ('', '0')

def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    if len(argv) != 1:
        print(format_diagnostic(None, CompileError("Usage", "invalid number of arguments")),
              file=sys.stderr)
        return 1

    source = argv[0]
    result = compile_source(source, verbose=verbose_enabled())
    if not result['asm']:
        print(format_diagnostic(source, result['error']), file=sys.stderr)
        return 1

    print('\n'.join(result['asm']))
    return 0

if __name__ == '__main__':
    sys.exit(main())
