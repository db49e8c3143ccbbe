"""
JVM Bytecode Instruction Decoder
================================

Linear-sweep decoder for the body of a ``Code`` attribute.  Each decoded
:class:`Instruction` keeps its byte offset, opcode and raw operand bytes,
and can report its branch targets and a constant-pool description used
in the instruction table of the debug block.

Variable-length forms handled explicitly:
    - ``tableswitch`` / ``lookupswitch`` (0-3 padding bytes to a 4-byte boundary)
    - ``wide`` (widened local index, and a 16-bit constant for ``iinc``)

References:
    - The Java Virtual Machine Specification, Java SE 21 Edition, Chapter 6.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from declass.parsers.classfile import ClassFile

# ---------------------------------------------------------------------------
# Opcode table: opcode -> (mnemonic, operand byte count); -1 marks variable
# ---------------------------------------------------------------------------

OPCODES: dict[int, tuple[str, int]] = {
    0x00: ("nop", 0), 0x01: ("aconst_null", 0),
    0x02: ("iconst_m1", 0), 0x03: ("iconst_0", 0), 0x04: ("iconst_1", 0),
    0x05: ("iconst_2", 0), 0x06: ("iconst_3", 0), 0x07: ("iconst_4", 0),
    0x08: ("iconst_5", 0), 0x09: ("lconst_0", 0), 0x0A: ("lconst_1", 0),
    0x0B: ("fconst_0", 0), 0x0C: ("fconst_1", 0), 0x0D: ("fconst_2", 0),
    0x0E: ("dconst_0", 0), 0x0F: ("dconst_1", 0),
    0x10: ("bipush", 1), 0x11: ("sipush", 2),
    0x12: ("ldc", 1), 0x13: ("ldc_w", 2), 0x14: ("ldc2_w", 2),
    0x15: ("iload", 1), 0x16: ("lload", 1), 0x17: ("fload", 1),
    0x18: ("dload", 1), 0x19: ("aload", 1),
    0x1A: ("iload_0", 0), 0x1B: ("iload_1", 0), 0x1C: ("iload_2", 0), 0x1D: ("iload_3", 0),
    0x1E: ("lload_0", 0), 0x1F: ("lload_1", 0), 0x20: ("lload_2", 0), 0x21: ("lload_3", 0),
    0x22: ("fload_0", 0), 0x23: ("fload_1", 0), 0x24: ("fload_2", 0), 0x25: ("fload_3", 0),
    0x26: ("dload_0", 0), 0x27: ("dload_1", 0), 0x28: ("dload_2", 0), 0x29: ("dload_3", 0),
    0x2A: ("aload_0", 0), 0x2B: ("aload_1", 0), 0x2C: ("aload_2", 0), 0x2D: ("aload_3", 0),
    0x2E: ("iaload", 0), 0x2F: ("laload", 0), 0x30: ("faload", 0), 0x31: ("daload", 0),
    0x32: ("aaload", 0), 0x33: ("baload", 0), 0x34: ("caload", 0), 0x35: ("saload", 0),
    0x36: ("istore", 1), 0x37: ("lstore", 1), 0x38: ("fstore", 1),
    0x39: ("dstore", 1), 0x3A: ("astore", 1),
    0x3B: ("istore_0", 0), 0x3C: ("istore_1", 0), 0x3D: ("istore_2", 0), 0x3E: ("istore_3", 0),
    0x3F: ("lstore_0", 0), 0x40: ("lstore_1", 0), 0x41: ("lstore_2", 0), 0x42: ("lstore_3", 0),
    0x43: ("fstore_0", 0), 0x44: ("fstore_1", 0), 0x45: ("fstore_2", 0), 0x46: ("fstore_3", 0),
    0x47: ("dstore_0", 0), 0x48: ("dstore_1", 0), 0x49: ("dstore_2", 0), 0x4A: ("dstore_3", 0),
    0x4B: ("astore_0", 0), 0x4C: ("astore_1", 0), 0x4D: ("astore_2", 0), 0x4E: ("astore_3", 0),
    0x4F: ("iastore", 0), 0x50: ("lastore", 0), 0x51: ("fastore", 0), 0x52: ("dastore", 0),
    0x53: ("aastore", 0), 0x54: ("bastore", 0), 0x55: ("castore", 0), 0x56: ("sastore", 0),
    0x57: ("pop", 0), 0x58: ("pop2", 0), 0x59: ("dup", 0), 0x5A: ("dup_x1", 0),
    0x5B: ("dup_x2", 0), 0x5C: ("dup2", 0), 0x5D: ("dup2_x1", 0), 0x5E: ("dup2_x2", 0),
    0x5F: ("swap", 0),
    0x60: ("iadd", 0), 0x61: ("ladd", 0), 0x62: ("fadd", 0), 0x63: ("dadd", 0),
    0x64: ("isub", 0), 0x65: ("lsub", 0), 0x66: ("fsub", 0), 0x67: ("dsub", 0),
    0x68: ("imul", 0), 0x69: ("lmul", 0), 0x6A: ("fmul", 0), 0x6B: ("dmul", 0),
    0x6C: ("idiv", 0), 0x6D: ("ldiv", 0), 0x6E: ("fdiv", 0), 0x6F: ("ddiv", 0),
    0x70: ("irem", 0), 0x71: ("lrem", 0), 0x72: ("frem", 0), 0x73: ("drem", 0),
    0x74: ("ineg", 0), 0x75: ("lneg", 0), 0x76: ("fneg", 0), 0x77: ("dneg", 0),
    0x78: ("ishl", 0), 0x79: ("lshl", 0), 0x7A: ("ishr", 0), 0x7B: ("lshr", 0),
    0x7C: ("iushr", 0), 0x7D: ("lushr", 0), 0x7E: ("iand", 0), 0x7F: ("land", 0),
    0x80: ("ior", 0), 0x81: ("lor", 0), 0x82: ("ixor", 0), 0x83: ("lxor", 0),
    0x84: ("iinc", 2),
    0x85: ("i2l", 0), 0x86: ("i2f", 0), 0x87: ("i2d", 0), 0x88: ("l2i", 0),
    0x89: ("l2f", 0), 0x8A: ("l2d", 0), 0x8B: ("f2i", 0), 0x8C: ("f2l", 0),
    0x8D: ("f2d", 0), 0x8E: ("d2i", 0), 0x8F: ("d2l", 0), 0x90: ("d2f", 0),
    0x91: ("i2b", 0), 0x92: ("i2c", 0), 0x93: ("i2s", 0),
    0x94: ("lcmp", 0), 0x95: ("fcmpl", 0), 0x96: ("fcmpg", 0),
    0x97: ("dcmpl", 0), 0x98: ("dcmpg", 0),
    0x99: ("ifeq", 2), 0x9A: ("ifne", 2), 0x9B: ("iflt", 2), 0x9C: ("ifge", 2),
    0x9D: ("ifgt", 2), 0x9E: ("ifle", 2),
    0x9F: ("if_icmpeq", 2), 0xA0: ("if_icmpne", 2), 0xA1: ("if_icmplt", 2),
    0xA2: ("if_icmpge", 2), 0xA3: ("if_icmpgt", 2), 0xA4: ("if_icmple", 2),
    0xA5: ("if_acmpeq", 2), 0xA6: ("if_acmpne", 2),
    0xA7: ("goto", 2), 0xA8: ("jsr", 2), 0xA9: ("ret", 1),
    0xAA: ("tableswitch", -1), 0xAB: ("lookupswitch", -1),
    0xAC: ("ireturn", 0), 0xAD: ("lreturn", 0), 0xAE: ("freturn", 0),
    0xAF: ("dreturn", 0), 0xB0: ("areturn", 0), 0xB1: ("return", 0),
    0xB2: ("getstatic", 2), 0xB3: ("putstatic", 2), 0xB4: ("getfield", 2), 0xB5: ("putfield", 2),
    0xB6: ("invokevirtual", 2), 0xB7: ("invokespecial", 2), 0xB8: ("invokestatic", 2),
    0xB9: ("invokeinterface", 4), 0xBA: ("invokedynamic", 4),
    0xBB: ("new", 2), 0xBC: ("newarray", 1), 0xBD: ("anewarray", 2),
    0xBE: ("arraylength", 0), 0xBF: ("athrow", 0),
    0xC0: ("checkcast", 2), 0xC1: ("instanceof", 2),
    0xC2: ("monitorenter", 0), 0xC3: ("monitorexit", 0),
    0xC4: ("wide", -1), 0xC5: ("multianewarray", 3),
    0xC6: ("ifnull", 2), 0xC7: ("ifnonnull", 2),
    0xC8: ("goto_w", 4), 0xC9: ("jsr_w", 4),
    0xCA: ("breakpoint", 0), 0xFE: ("impdep1", 0), 0xFF: ("impdep2", 0),
}

OPCODE_TABLESWITCH: int = 0xAA
OPCODE_LOOKUPSWITCH: int = 0xAB
OPCODE_WIDE: int = 0xC4
OPCODE_IINC: int = 0x84

_BRANCH16: frozenset[int] = frozenset(range(0x99, 0xA9)) | {0xC6, 0xC7}
_BRANCH32: frozenset[int] = frozenset({0xC8, 0xC9})

# Opcodes whose first two operand bytes index a class or member reference
_CP_INDEX16: frozenset[int] = frozenset(
    {0x13, 0x14, 0xB2, 0xB3, 0xB4, 0xB5, 0xB6, 0xB7, 0xB8, 0xB9, 0xBA,
     0xBB, 0xBD, 0xC0, 0xC1, 0xC5}
)

# Instructions whose owner class counts as a referenced type of the member
OWNER_REFERENCING_OPCODES: frozenset[int] = frozenset({0xB2, 0xB4, 0xB6, 0xB7, 0xB8})

_NEWARRAY_TYPES: dict[int, str] = {
    4: "boolean", 5: "char", 6: "float", 7: "double",
    8: "byte", 9: "short", 10: "int", 11: "long",
}


class Instruction:
    """One decoded instruction at byte offset :attr:`offset`."""
    __slots__ = ("offset", "opcode", "operands")

    def __init__(self, offset: int, opcode: int, operands: bytes = b"") -> None:
        self.offset = offset
        self.opcode = opcode
        self.operands = operands

    @property
    def mnemonic(self) -> str:
        entry = OPCODES.get(self.opcode)
        return entry[0] if entry else f"unknown_{self.opcode:02x}"

    @property
    def length(self) -> int:
        return 1 + len(self.operands)

    @property
    def operand_values(self) -> list[int]:
        """Operand bytes as unsigned integers."""
        return list(self.operands)

    def cp_index(self) -> int | None:
        """Constant-pool index referenced by this instruction, if any."""
        if self.opcode == 0x12:
            return self.operands[0]
        if self.opcode in _CP_INDEX16:
            return struct.unpack_from(">H", self.operands, 0)[0]
        return None

    def branch_offsets(self) -> list[int]:
        """Absolute byte offsets this instruction may jump to."""
        if self.opcode in _BRANCH16:
            return [self.offset + struct.unpack_from(">h", self.operands, 0)[0]]
        if self.opcode in _BRANCH32:
            return [self.offset + struct.unpack_from(">i", self.operands, 0)[0]]
        if self.opcode == OPCODE_TABLESWITCH:
            pad = _padding(self.offset)
            default, low, high = struct.unpack_from(">iii", self.operands, pad)
            count = high - low + 1
            jumps = struct.unpack_from(f">{count}i", self.operands, pad + 12)
            return [self.offset + default] + [self.offset + jump for jump in jumps]
        if self.opcode == OPCODE_LOOKUPSWITCH:
            pad = _padding(self.offset)
            default, npairs = struct.unpack_from(">ii", self.operands, pad)
            pairs = struct.unpack_from(f">{npairs * 2}i", self.operands, pad + 8)
            return [self.offset + default] + [self.offset + jump for jump in pairs[1::2]]
        return []

    def describe(self, class_file: ClassFile) -> str:
        """Constant-pool derived text for the ``Data`` column, or ``""``."""
        index = self.cp_index()
        if index is not None:
            return _describe_constant(class_file, index)
        if self.opcode == 0xBC:
            return _NEWARRAY_TYPES.get(self.operands[0], "")
        return ""

    def __repr__(self) -> str:
        return f"Instruction({self.offset}, {self.mnemonic})"


def _padding(offset: int) -> int:
    return (4 - (offset + 1) % 4) % 4


def _describe_constant(class_file: ClassFile, index: int) -> str:
    # Local import: classfile imports this module at load time
    from declass.parsers import classfile as cf

    entry = class_file.constant(index)
    if entry.tag == cf.CONSTANT_CLASS:
        return class_file.class_name(index).replace("/", ".")
    if entry.tag in (cf.CONSTANT_FIELDREF, cf.CONSTANT_METHODREF, cf.CONSTANT_INTERFACE_METHODREF):
        owner, name, descriptor = class_file.member_ref(index)
        return f"{owner.replace('/', '.')}.{name}:{descriptor}"
    if entry.tag in (cf.CONSTANT_DYNAMIC, cf.CONSTANT_INVOKE_DYNAMIC):
        _, nat_index = entry.value  # type: ignore[misc]
        name, descriptor = class_file.name_and_type(nat_index)
        return f"{name}:{descriptor}"
    if entry.tag == cf.CONSTANT_STRING:
        return f'"{class_file.literal(index)}"'
    if entry.tag in (cf.CONSTANT_INTEGER, cf.CONSTANT_FLOAT, cf.CONSTANT_LONG, cf.CONSTANT_DOUBLE):
        return str(entry.value)
    if entry.tag == cf.CONSTANT_METHOD_TYPE:
        (descriptor_index,) = entry.value  # type: ignore[misc]
        return class_file.utf8(descriptor_index)
    return ""


def _operand_length(code: bytes, offset: int, opcode: int) -> int:
    fixed = OPCODES[opcode][1]
    if fixed >= 0:
        return fixed
    if opcode == OPCODE_WIDE:
        return 5 if code[offset + 1] == OPCODE_IINC else 3
    pad = _padding(offset)
    if opcode == OPCODE_TABLESWITCH:
        low, high = struct.unpack_from(">ii", code, offset + 1 + pad + 4)
        if high < low:
            raise ValueError(f"tableswitch at {offset} has high < low")
        return pad + 12 + 4 * (high - low + 1)
    (npairs,) = struct.unpack_from(">i", code, offset + 1 + pad + 4)
    if npairs < 0:
        raise ValueError(f"lookupswitch at {offset} has negative pair count")
    return pad + 8 + 8 * npairs


def decode_instructions(code: bytes) -> list[Instruction]:
    """Decode *code* into instructions.

    Raises:
        ValueError: unknown opcode or truncated operands.
    """
    instructions: list[Instruction] = []
    offset = 0
    while offset < len(code):
        opcode = code[offset]
        if opcode not in OPCODES:
            raise ValueError(f"Unknown opcode 0x{opcode:02X} at offset {offset}")
        length = _operand_length(code, offset, opcode)
        operands = code[offset + 1:offset + 1 + length]
        if len(operands) != length:
            raise ValueError(f"Truncated {OPCODES[opcode][0]} at offset {offset}")
        instructions.append(Instruction(offset, opcode, operands))
        offset += 1 + length
    return instructions


def referenced_owner_names(instructions: list[Instruction], class_file: ClassFile) -> list[str]:
    """Internal names of the owners of fields and methods the code touches."""
    owners: list[str] = []
    for instruction in instructions:
        if instruction.opcode in OWNER_REFERENCING_OPCODES:
            owner, _, _ = class_file.member_ref(instruction.cp_index())  # type: ignore[arg-type]
            owners.append(owner)
    return owners
