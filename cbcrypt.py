#!/usr/bin/env python3
"""
cbcrypt - A password-based file encryption/decryption tool (AES-128-CBC, PBKDF2-HMAC-SHA256).

Overview:
- Derives a 16-byte AES key and a 16-byte IV from a password with PBKDF2-HMAC-SHA256.
- Encrypts files with AES-CBC and PKCS#7 padding, streaming in 64 KiB chunks.
- Writes output through a temporary file that replaces the destination only on success.
- Reports failures as typed errors (read, write, malformed input, invalid padding).
- Provides analysis of the salted file header.
- Includes rotating-file logging and colored console output.

WARNING: CBC without a MAC is not authenticated encryption. A wrong password is detected
only through the padding check, which is a heuristic: some wrong keys still produce
valid padding and yield garbage output.

Dependencies:
- Python 3.8+
- cryptography (pip install cryptography)
- colorama (pip install colorama)

Usage:
    python cbcrypt.py --encrypt --file ./report.pdf --password mypass
    python cbcrypt.py --decrypt --file ./report.pdf.enc --password-file ./pass.txt
    python cbcrypt.py --encrypt --file ./notes.txt --output ./notes.bin --legacy
    python cbcrypt.py --analyze --file ./report.pdf.enc

Key derivation:
- PBKDF2-HMAC-SHA256, 1000 iterations, 32 bytes of output.
- Bytes 0..15 are the AES key, bytes 16..31 are the CBC IV.

File formats:
- Salted (default): signature (8 bytes, 'CBCRYPT1') + salt (16 random bytes) + ciphertext.
- Legacy (--legacy): raw ciphertext with no header. The salt is the fixed constant
  01 02 03 04 05 06 07 08, so every file encrypted with one password shares key and IV.

Exit status:
- 0 success, 1 usage or password error, 3 read error, 4 write error,
  5 malformed input, 6 invalid padding (likely wrong password), 130 interrupted.
"""
import argparse
import enum
import getpass
import logging
import os
import secrets
import shutil
import sys
import tempfile
import time
from contextlib import suppress
from dataclasses import dataclass
from importlib import metadata
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import BinaryIO, Iterator, List, NamedTuple, Optional, Union
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from colorama import init, Fore, Style

# Initialize colorama for colored console output
init(autoreset=True)

# Program metadata
PROGRAM_VERSION = "1.0"
PROGRAM_NAME = "cbcrypt"

PathLike = Union[str, os.PathLike]
Password = Union[str, bytes, bytearray, memoryview]


@dataclass(frozen=True)
class CryptConfig:
    """Configuration constants for cbcrypt."""
    SIGNATURE: bytes = b'CBCRYPT1'  # 8-byte signature of the salted format
    LEGACY_SALT: bytes = bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08])  # Fixed salt of the legacy format
    SALT_LENGTH: int = 16  # Bytes of random salt in the salted format
    KEY_LENGTH: int = 16  # AES-128 key
    IV_LENGTH: int = 16  # CBC IV, equal to the AES block size
    BLOCK_SIZE: int = 16  # AES block size in bytes
    PBKDF2_ITERATIONS: int = 1000  # PBKDF2-HMAC-SHA256 iteration count
    CHUNK_SIZE: int = 64 * 1024  # Read/write buffer size for streaming
    ENCRYPTED_SUFFIX: str = '.enc'  # Default suffix appended on encryption
    DECRYPTED_SUFFIX: str = '.dec'  # Fallback suffix on decryption
    LOG_FILE: str = 'cbcrypt.log'  # Default log file
    LOG_MAX_SIZE: int = 10 * 1024 * 1024  # Max log file size (10 MB)
    LOG_BACKUP_COUNT: int = 3  # Number of backup log files

    @property
    def header_length(self) -> int:
        """Size of the salted-format header (signature + salt)."""
        return len(self.SIGNATURE) + self.SALT_LENGTH


class Direction(enum.Enum):
    """Direction of a pipeline transform."""
    ENCRYPT = 'encrypt'
    DECRYPT = 'decrypt'


class ErrorKind(enum.Enum):
    """Failure categories; the value is the process exit code."""
    IO_READ = 3
    IO_WRITE = 4
    MALFORMED_INPUT = 5
    INVALID_PADDING = 6

    @property
    def exit_code(self) -> int:
        return self.value


class CipherError(Exception):
    """Base class of all failures reported by the derive/transform pipeline."""
    kind: ErrorKind

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class IoReadError(CipherError):
    """The source file is missing, unreadable or failed while being read."""
    kind = ErrorKind.IO_READ


class IoWriteError(CipherError):
    """The destination could not be created, written or moved into place."""
    kind = ErrorKind.IO_WRITE


class MalformedInputError(CipherError):
    """The input does not have the structure of a ciphertext file."""
    kind = ErrorKind.MALFORMED_INPUT


class InvalidPaddingError(CipherError):
    """
    Decrypted data ended with invalid PKCS#7 padding.

    This usually means a wrong password or a corrupted file. The check is a weak
    heuristic: a wrong key produces valid padding by chance in a small fraction of
    cases, in which case decryption "succeeds" with garbage output.
    """
    kind = ErrorKind.INVALID_PADDING


class DerivedKey(NamedTuple):
    """AES key and CBC IV produced by one derivation call."""
    key: bytes
    iv: bytes


class FileHeader(NamedTuple):
    """Parsed header of a salted-format file."""
    signature: bytes
    salt: bytes
    header_length: int
    payload_length: int


@dataclass
class CryptResult:
    """Outcome of one encrypt/decrypt invocation."""
    ok: bool
    message: str
    output: Optional[Path] = None
    error: Optional[CipherError] = None

    @property
    def exit_code(self) -> int:
        if self.ok:
            return 0
        return self.error.kind.exit_code if self.error is not None else 1


class CryptKeyDeriver:
    """Turns a password and a salt into AES key material."""
    def __init__(self, config: CryptConfig):
        """
        Initialize the key deriver.

        Args:
            config: CryptConfig instance with program constants.
        """
        self.config = config
        self.logger = logging.getLogger(__name__)

    def generate_salt(self) -> bytes:
        """
        Generate a cryptographically secure random salt for the salted format.

        Returns:
            bytes: Random salt of length SALT_LENGTH.
        """
        salt = secrets.token_bytes(self.config.SALT_LENGTH)
        self.logger.debug(f"Generated salt: {salt.hex()}")
        return salt

    def derive(self, password: Password, salt: Optional[bytes] = None) -> DerivedKey:
        """
        Derive the AES key and CBC IV from a password.

        A single PBKDF2-HMAC-SHA256 call produces KEY_LENGTH + IV_LENGTH bytes; the
        first KEY_LENGTH bytes are the key and the rest is the IV. The result depends
        only on password and salt, so decryption regenerates the same pair.

        Args:
            password: Password as str (UTF-8 encoded) or bytes. May be empty.
            salt: Salt bytes. Defaults to the fixed legacy salt.

        Returns:
            DerivedKey: (key, iv) pair.

        Raises:
            TypeError: If password is neither str nor bytes-like.
        """
        if salt is None:
            salt = self.config.LEGACY_SALT
        secret = self._encode_password(password)
        if not secret:
            self.logger.debug("Deriving key material from an empty password")
        self.logger.debug(
            f"Deriving key with salt: {salt.hex()}, iterations={self.config.PBKDF2_ITERATIONS}"
        )
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.config.KEY_LENGTH + self.config.IV_LENGTH,
            salt=bytes(salt),
            iterations=self.config.PBKDF2_ITERATIONS,
        )
        material = kdf.derive(secret)
        return DerivedKey(material[:self.config.KEY_LENGTH], material[self.config.KEY_LENGTH:])

    @staticmethod
    def _encode_password(password: Password) -> bytes:
        if isinstance(password, str):
            return password.encode('utf-8')
        if isinstance(password, (bytes, bytearray, memoryview)):
            return bytes(password)
        raise TypeError(f"Password must be str or bytes, not {type(password).__name__}")


class CryptPipeline:
    """Streams a file through AES-CBC with PKCS#7 padding."""
    def __init__(self, config: CryptConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def transform(
        self, direction: Direction, key: bytes, iv: bytes, source: PathLike, dest: PathLike,
        header: bytes = b'', offset: int = 0
    ) -> None:
        """
        Encrypt or decrypt source into dest.

        Output goes to a temporary file next to dest, which replaces dest only after the
        whole file was transformed. On any failure the temporary file is removed, so dest
        is either complete or untouched. An overwritten dest keeps its permission bits; a
        new one gets the umask default. The source is only read.

        Args:
            direction: Direction.ENCRYPT or Direction.DECRYPT.
            key: AES key (16, 24 or 32 bytes).
            iv: CBC IV (16 bytes).
            source: Path of the file to read.
            dest: Path of the file to create or overwrite.
            header: Encrypt only. Bytes written verbatim before the ciphertext.
            offset: Decrypt only. Number of header bytes to skip before the ciphertext.

        Raises:
            IoReadError: If the source cannot be opened or read.
            IoWriteError: If the destination cannot be written or moved into place.
            MalformedInputError: If the ciphertext is empty or not block aligned.
            InvalidPaddingError: If the decrypted padding is invalid (likely wrong password).
            ValueError: If key or IV has the wrong length.
        """
        source_path = Path(source)
        dest_path = Path(dest)
        cipher = self._build_cipher(key, iv)
        start_time = time.time()

        try:
            f_in = source_path.open('rb')
        except OSError as e:
            raise IoReadError(f"Cannot open {source_path} for reading: {e}", source_path) from e

        with f_in:
            if direction is Direction.DECRYPT:
                self._seek_ciphertext(f_in, source_path, offset)
            temp_path, f_out = self._open_temp(dest_path)
            completed = False
            try:
                try:
                    with f_out:
                        if direction is Direction.ENCRYPT:
                            self._write(f_out, header, dest_path)
                            written = self._encrypt_stream(cipher, f_in, f_out, source_path, dest_path)
                        else:
                            written = self._decrypt_stream(cipher, f_in, f_out, source_path, dest_path)
                except OSError as e:
                    raise IoWriteError(f"Cannot finish writing {dest_path}: {e}", dest_path) from e
                try:
                    self._apply_mode(temp_path, dest_path)
                    os.replace(temp_path, dest_path)
                except OSError as e:
                    raise IoWriteError(f"Cannot move output into place at {dest_path}: {e}", dest_path) from e
                completed = True
            finally:
                if not completed:
                    self._discard(temp_path)

        elapsed_time = time.time() - start_time
        self.logger.debug(
            f"{direction.value.capitalize()}ed {source_path} to {dest_path}: "
            f"{written} bytes in {elapsed_time:.2f}s"
        )

    def _build_cipher(self, key: bytes, iv: bytes) -> Cipher:
        if len(key) not in (16, 24, 32):
            raise ValueError(f"Invalid AES key length: {len(key)} bytes")
        if len(iv) != self.config.BLOCK_SIZE:
            raise ValueError(f"Invalid IV length: {len(iv)} bytes, expected {self.config.BLOCK_SIZE}")
        return Cipher(algorithms.AES(bytes(key)), modes.CBC(bytes(iv)))

    def _seek_ciphertext(self, f_in: BinaryIO, source_path: Path, offset: int) -> None:
        """Validate the ciphertext length and position f_in at its first byte."""
        try:
            file_size = os.fstat(f_in.fileno()).st_size
            f_in.seek(offset)
        except OSError as e:
            raise IoReadError(f"Cannot read {source_path}: {e}", source_path) from e
        payload_length = file_size - offset
        if payload_length <= 0:
            raise MalformedInputError(f"No ciphertext found in {source_path}", source_path)
        if payload_length % self.config.BLOCK_SIZE:
            raise MalformedInputError(
                f"Ciphertext length of {source_path} ({payload_length} bytes) "
                f"is not a multiple of {self.config.BLOCK_SIZE}",
                source_path
            )
        self.logger.debug(f"Ciphertext of {source_path}: {payload_length} bytes at offset {offset}")

    def _open_temp(self, dest_path: Path):
        try:
            f_out = tempfile.NamedTemporaryFile(
                dir=dest_path.parent, prefix=f".{dest_path.name}.", suffix='.tmp', delete=False
            )
        except OSError as e:
            raise IoWriteError(f"Cannot create output next to {dest_path}: {e}", dest_path) from e
        return Path(f_out.name), f_out

    @staticmethod
    def _apply_mode(temp_path: Path, dest_path: Path) -> None:
        """Keep the mode of an existing destination, else use the umask default for new files."""
        if dest_path.is_file():
            shutil.copymode(dest_path, temp_path)
        else:
            umask = os.umask(0)
            os.umask(umask)
            os.chmod(temp_path, 0o666 & ~umask)

    def _discard(self, temp_path: Path) -> None:
        with suppress(FileNotFoundError):
            temp_path.unlink()
        self.logger.debug(f"Removed temporary file {temp_path}")

    def _read_chunks(self, f_in: BinaryIO, source_path: Path) -> Iterator[bytes]:
        while True:
            try:
                chunk = f_in.read(self.config.CHUNK_SIZE)
            except OSError as e:
                raise IoReadError(f"Error reading {source_path}: {e}", source_path) from e
            if not chunk:
                return
            yield chunk

    @staticmethod
    def _write(f_out: BinaryIO, data: bytes, dest_path: Path) -> int:
        if data:
            try:
                f_out.write(data)
            except OSError as e:
                raise IoWriteError(f"Error writing {dest_path}: {e}", dest_path) from e
        return len(data)

    def _encrypt_stream(
        self, cipher: Cipher, f_in: BinaryIO, f_out: BinaryIO, source_path: Path, dest_path: Path
    ) -> int:
        padder = padding.PKCS7(self.config.BLOCK_SIZE * 8).padder()
        encryptor = cipher.encryptor()
        written = 0
        for chunk in self._read_chunks(f_in, source_path):
            written += self._write(f_out, encryptor.update(padder.update(chunk)), dest_path)
        final = encryptor.update(padder.finalize()) + encryptor.finalize()
        written += self._write(f_out, final, dest_path)
        return written

    def _decrypt_stream(
        self, cipher: Cipher, f_in: BinaryIO, f_out: BinaryIO, source_path: Path, dest_path: Path
    ) -> int:
        unpadder = padding.PKCS7(self.config.BLOCK_SIZE * 8).unpadder()
        decryptor = cipher.decryptor()
        written = 0
        for chunk in self._read_chunks(f_in, source_path):
            written += self._write(f_out, unpadder.update(decryptor.update(chunk)), dest_path)
        try:
            tail = decryptor.finalize()
        except ValueError as e:
            raise MalformedInputError(f"Truncated ciphertext in {source_path}: {e}", source_path) from e
        try:
            final = unpadder.update(tail) + unpadder.finalize()
        except ValueError as e:
            raise InvalidPaddingError(
                f"Invalid padding in {source_path}: wrong password or corrupted file "
                "(padding is only a heuristic check)",
                source_path
            ) from e
        written += self._write(f_out, final, dest_path)
        return written


class CryptFileProcessor:
    """Encrypts, decrypts and analyzes single files."""
    def __init__(self, config: CryptConfig, verbose: bool = False):
        """
        Initialize the file processor with configuration and options.

        Args:
            config: CryptConfig instance with program constants.
            verbose: If True, enable verbose console output.
        """
        self.config = config
        self.key_deriver = CryptKeyDeriver(config)
        self.pipeline = CryptPipeline(config)
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        self.logger.debug(f"Initialized CryptFileProcessor: verbose={verbose}")

    def encrypt_file(self, input_file: PathLike, output_file: PathLike, password: Password, legacy: bool = False) -> None:
        """
        Encrypt input_file into output_file.

        Args:
            input_file: Path to the plaintext file.
            output_file: Path of the ciphertext file to create.
            password: Password for key derivation.
            legacy: If True, use the fixed salt and write no header.

        Raises:
            CipherError: If reading, writing or encryption fails.
        """
        if legacy:
            derived = self.key_deriver.derive(password)
            header = b''
        else:
            salt = self.key_deriver.generate_salt()
            derived = self.key_deriver.derive(password, salt)
            header = self.config.SIGNATURE + salt
        if self.verbose:
            print(f"{Fore.CYAN}Encrypting {input_file} ({'legacy' if legacy else 'salted'} format)...{Style.RESET_ALL}")
        self.pipeline.transform(Direction.ENCRYPT, derived.key, derived.iv, input_file, output_file, header=header)

    def decrypt_file(self, input_file: PathLike, output_file: PathLike, password: Password, legacy: bool = False) -> None:
        """
        Decrypt input_file into output_file.

        Args:
            input_file: Path to the ciphertext file.
            output_file: Path of the plaintext file to create.
            password: Password for key derivation.
            legacy: If True, expect a headerless file encrypted with the fixed salt.

        Raises:
            CipherError: If reading, writing or decryption fails.
        """
        if legacy:
            derived = self.key_deriver.derive(password)
            offset = 0
        else:
            header = self.read_header(input_file)
            derived = self.key_deriver.derive(password, header.salt)
            offset = header.header_length
        if self.verbose:
            print(f"{Fore.CYAN}Decrypting {input_file} ({'legacy' if legacy else 'salted'} format)...{Style.RESET_ALL}")
        self.pipeline.transform(Direction.DECRYPT, derived.key, derived.iv, input_file, output_file, offset=offset)

    def read_header(self, file_path: PathLike) -> FileHeader:
        """
        Read and validate the header of a salted-format file.

        Raises:
            IoReadError: If the file cannot be read.
            MalformedInputError: If the file is too short or has a wrong signature.
        """
        path = Path(file_path)
        try:
            with path.open('rb') as f:
                file_size = os.fstat(f.fileno()).st_size
                data = f.read(self.config.header_length)
        except OSError as e:
            raise IoReadError(f"Cannot read {path}: {e}", path) from e

        if len(data) < self.config.header_length:
            raise MalformedInputError(
                f"File {path} too short ({len(data)} bytes, expected at least {self.config.header_length})", path
            )
        signature = data[:len(self.config.SIGNATURE)]
        if signature != self.config.SIGNATURE:
            raise MalformedInputError(f"Invalid file signature in {path} (legacy file? try --legacy)", path)
        salt = data[len(self.config.SIGNATURE):]
        self.logger.debug(f"Header of {path}: salt={salt.hex()}, payload={file_size - len(data)} bytes")
        return FileHeader(signature, salt, len(data), file_size - len(data))

    def analyze_file(self, file_path: PathLike) -> FileHeader:
        """Print the header layout of a salted-format file and return it."""
        header = self.read_header(file_path)
        aligned = header.payload_length > 0 and header.payload_length % self.config.BLOCK_SIZE == 0
        print(f"{Fore.CYAN}Analysis of {file_path}:{Style.RESET_ALL}")
        print(f"File size: {header.header_length + header.payload_length} bytes")
        print(f"Header ({header.header_length} bytes):")
        print(f"  Offset 0: Signature ({len(header.signature)} bytes): {header.signature.decode('ascii')}")
        print(f"  Offset {len(header.signature)}: Salt ({len(header.salt)} bytes): {header.salt.hex()}")
        print(f"Ciphertext: {header.payload_length} bytes, block aligned: {'yes' if aligned else 'NO'}")
        self.logger.info(
            f"Analyzed {file_path}: salt={header.salt.hex()[:16]}..., payload_size={header.payload_length}"
        )
        return header

    def process(
        self, mode: Union[Direction, str], input_file: PathLike, output_file: PathLike,
        password: Password, legacy: bool = False
    ) -> CryptResult:
        """
        Run one encryption or decryption and report the outcome.

        Never raises for CipherError; the error is returned in the result.

        Args:
            mode: Direction or its string value ('encrypt'/'decrypt').
            input_file: Source path.
            output_file: Destination path.
            password: Password for key derivation.
            legacy: If True, use the headerless fixed-salt format.

        Returns:
            CryptResult: ok flag, human-readable message, output path or error.
        """
        direction = Direction(mode)
        start_time = time.time()
        self.logger.info(f"Starting {direction.value} of {input_file} to {output_file} (legacy={legacy})")
        try:
            if direction is Direction.ENCRYPT:
                self.encrypt_file(input_file, output_file, password, legacy)
            else:
                self.decrypt_file(input_file, output_file, password, legacy)
        except CipherError as e:
            self.logger.error(f"{direction.value.capitalize()}ion failed for {input_file} [{e.kind.name}]: {e}")
            return CryptResult(False, f"Error: {e}", error=e)

        elapsed_time = time.time() - start_time
        message = f"{direction.value.capitalize()}ed {input_file} to {output_file} in {elapsed_time:.2f}s"
        self.logger.info(message)
        return CryptResult(True, message, output=Path(output_file))


class CryptCLI:
    """Command-line interface for cbcrypt."""
    def __init__(self, config: Optional[CryptConfig] = None):
        self.config = config or CryptConfig()
        self.logger = logging.getLogger(__name__)
        self._handlers: List[logging.Handler] = []

    def _configure_logging(self, log_file: str, debug: bool) -> None:
        """Attach a rotating file handler and, in debug mode, a console handler."""
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
        log_handler = RotatingFileHandler(
            log_file,
            maxBytes=self.config.LOG_MAX_SIZE,
            backupCount=self.config.LOG_BACKUP_COUNT
        )
        log_handler.setFormatter(formatter)
        self._handlers.append(log_handler)
        if debug:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self._handlers.append(console_handler)
        for handler in self._handlers:
            self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)

        # Log program and dependency versions
        try:
            crypto_version = metadata.version("cryptography")
            colorama_version = metadata.version("colorama")
        except metadata.PackageNotFoundError as e:
            self.logger.error(f"Failed to get dependency versions: {e}")
            crypto_version = colorama_version = "unknown"
        self.logger.info(
            f"Starting {PROGRAM_NAME} v{PROGRAM_VERSION}, "
            f"dependencies: cryptography={crypto_version}, colorama={colorama_version}"
        )

    def _close_logging(self) -> None:
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers = []

    def _read_password_from_file(self, file_path: str) -> str:
        """
        Read a password from a file, stripping whitespace.

        Raises:
            ValueError: If the file cannot be read or decoded.
        """
        path = Path(file_path)
        try:
            password = path.read_text(encoding='utf-8').strip()
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(f"Failed to read password from {path}: {e}")
            raise ValueError(f"Error reading password file {path}: {e}") from e
        self.logger.debug(f"Read password from file: {path} (length: {len(password)} characters)")
        return password

    def _get_password(self, args: argparse.Namespace) -> str:
        if args.password is not None:
            return args.password
        if args.password_file:
            return self._read_password_from_file(args.password_file)
        password = getpass.getpass(f"{Fore.CYAN}Enter password: {Style.RESET_ALL}")
        if args.encrypt:
            confirm = getpass.getpass(f"{Fore.CYAN}Confirm password: {Style.RESET_ALL}")
            if password != confirm:
                raise ValueError("Passwords do not match")
        return password

    def _default_output(self, input_path: Path, encrypt: bool) -> Path:
        if encrypt:
            return input_path.with_name(input_path.name + self.config.ENCRYPTED_SUFFIX)
        if input_path.suffix == self.config.ENCRYPTED_SUFFIX:
            return input_path.with_suffix('')
        return input_path.with_name(input_path.name + self.config.DECRYPTED_SUFFIX)

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog=PROGRAM_NAME,
            description=(
                f"{PROGRAM_NAME}: password-based file encryption with AES-128-CBC and PBKDF2-HMAC-SHA256.\n"
                f"Version {PROGRAM_VERSION}\n"
                "Salted files carry an 8-byte signature and a random 16-byte salt before the ciphertext.\n"
                "Password can be provided via --password, --password-file, or interactive prompt.\n"
                "CBC is not authenticated: a wrong password is only detected heuristically."
            ),
            epilog=(
                "Examples:\n"
                f"  Encrypt a file: python cbcrypt.py --encrypt --file ./data.txt --password mypass\n"
                f"  Decrypt a file: python cbcrypt.py --decrypt --file ./data.txt.enc --password-file ./pass.txt\n"
                f"  Legacy format: python cbcrypt.py --encrypt --file ./data.txt --output ./data.bin --legacy\n"
                f"  Analyze a file: python cbcrypt.py --analyze --file ./data.txt.enc"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter
        )
        mode = parser.add_mutually_exclusive_group(required=True)
        mode.add_argument('--encrypt', action='store_true', help='Encrypt the specified file')
        mode.add_argument('--decrypt', action='store_true', help='Decrypt the specified file')
        mode.add_argument('--analyze', action='store_true', help='Analyze the header of a salted file')
        parser.add_argument('--file', type=str, required=True, help='Input file')
        parser.add_argument('--output', type=str, help='Output file (default: INPUT.enc / INPUT without .enc)')
        parser.add_argument('--password', type=str, help='Password for encryption/decryption')
        parser.add_argument('--password-file', type=str, help='File containing the password (UTF-8)')
        parser.add_argument('--legacy', action='store_true', help='Use the headerless fixed-salt format')
        parser.add_argument('--verbose', action='store_true', help='Enable verbose console output')
        parser.add_argument('--debug', action='store_true', help='Log debug records to the console')
        parser.add_argument('--log-file', type=str, default=self.config.LOG_FILE, help='Log file path')
        return parser

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Parse command-line arguments, execute the program and return the exit status."""
        args = self.build_parser().parse_args(argv)
        try:
            self._configure_logging(args.log_file, args.debug)
        except OSError as e:
            self._close_logging()
            print(f"{Fore.RED}Error opening log file {args.log_file}: {e}{Style.RESET_ALL}")
            return 1
        try:
            return self._dispatch(args)
        finally:
            self._close_logging()

    def _dispatch(self, args: argparse.Namespace) -> int:
        if args.password is not None and args.password_file:
            print(f"{Fore.RED}Error: Specify either --password or --password-file, not both{Style.RESET_ALL}")
            return 1
        input_path = Path(args.file).expanduser()
        processor = CryptFileProcessor(self.config, args.verbose)

        if args.analyze:
            try:
                processor.analyze_file(input_path)
            except CipherError as e:
                self.logger.error(f"Analysis failed for {input_path}: {e}")
                print(f"{Fore.RED}Error analyzing {input_path}: {e}{Style.RESET_ALL}")
                return e.kind.exit_code
            return 0

        output_path = Path(args.output).expanduser() if args.output else self._default_output(input_path, args.encrypt)
        if output_path.resolve() == input_path.resolve():
            print(f"{Fore.RED}Error: Output file must differ from input file{Style.RESET_ALL}")
            return 1
        if output_path.exists():
            self.logger.warning(f"Overwriting existing file: {output_path}")
            print(f"{Fore.YELLOW}Warning: Overwriting {output_path}{Style.RESET_ALL}")

        try:
            password = self._get_password(args)
        except ValueError as e:
            self.logger.error(f"Failed to obtain password: {e}")
            print(f"{Fore.RED}Error obtaining password: {e}{Style.RESET_ALL}")
            return 1
        self.logger.debug(f"Password provided (length: {len(password)} characters)")
        if not password:
            print(f"{Fore.YELLOW}Warning: Empty password{Style.RESET_ALL}")

        mode = Direction.ENCRYPT if args.encrypt else Direction.DECRYPT
        result = processor.process(mode, input_path, output_path, password, args.legacy)
        if result.ok:
            print(f"{Fore.GREEN}{result.message}{Style.RESET_ALL}")
        else:
            print(f"{Fore.RED}{result.message}{Style.RESET_ALL}")
        return result.exit_code


_DEFAULT_CONFIG = CryptConfig()


def derive(password: Password, salt: Optional[bytes] = None) -> DerivedKey:
    """Derive (key, iv) from password and salt with the default configuration."""
    return CryptKeyDeriver(_DEFAULT_CONFIG).derive(password, salt)


def transform(
    direction: Direction, key: bytes, iv: bytes, source: PathLike, dest: PathLike,
    header: bytes = b'', offset: int = 0
) -> None:
    """Stream source through AES-CBC into dest with the default configuration."""
    CryptPipeline(_DEFAULT_CONFIG).transform(direction, key, iv, source, dest, header=header, offset=offset)


def main() -> None:
    try:
        sys.exit(CryptCLI().run())
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}Operation cancelled by user.{Style.RESET_ALL}", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
