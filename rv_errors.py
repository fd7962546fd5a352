# All translation problems are ValueError subclasses, so callers can keep
# catching ValueError the same way for any stage.


class AsmError(ValueError):
    # Base for everything the assembler reports. line is the source line (1-based)
    # and may be filled in later by the code that knows it.
    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self):
        if self.line is None:
            return self.message
        return f"line {self.line}: {self.message}"


class SyntaxBoundaryError(AsmError):
    pass


class UnknownMnemonic(AsmError):
    pass


class OperandCountMismatch(AsmError):
    pass


class InvalidRegister(AsmError):
    pass


class InvalidImmediateToken(AsmError):
    pass


class ImmediateOutOfRange(AsmError):
    pass


class MisalignedTarget(AsmError):
    pass


class UndefinedSymbol(AsmError):
    pass


class DuplicateSymbol(AsmError):
    pass


class UnknownEncoding(ValueError):
    # The only decoder error. funct3/funct7 are None when dispatch never got that far.
    def __init__(self, word: int, opcode: int, funct3: int | None = None, funct7: int | None = None):
        self.word = word
        self.opcode = opcode
        self.funct3 = funct3
        self.funct7 = funct7
        msg = f"unknown encoding: opcode=0x{opcode:02x}"
        if funct3 is not None:
            msg += f" funct3=0x{funct3:x}"
        if funct7 is not None:
            msg += f" funct7=0x{funct7:02x}"
        super().__init__(f"{msg} word=0x{word:08x}")
