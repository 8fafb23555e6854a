import logging
import subprocess
import threading
from typing import Callable, Dict, List, Optional
from abc import ABC, abstractmethod


class CECCommand:
    """Represents a CEC frame (seen in traffic output or to be transmitted)"""
    def __init__(self, command_string: str):
        """
        Create a CECCommand from a frame string.

        Args:
            command_string: Frame string in format "XX:YY:ZZ..." where XX is initiator+destination
        """
        self.command_string = command_string.strip()

        parts = self.command_string.split(':')
        if len(parts) < 2:
            raise ValueError(f"Invalid CEC command format: {command_string}")

        # First byte: high nibble = initiator, low nibble = destination
        first_byte = int(parts[0], 16)
        self.initiator = (first_byte >> 4) & 0xF
        self.destination = first_byte & 0xF

        self.opcode = int(parts[1], 16)
        self.parameters = bytes([int(p, 16) for p in parts[2:]]) if len(parts) > 2 else b''

    @classmethod
    def from_traffic_line(cls, line: str) -> 'CECCommand':
        """
        Parse the frame out of a cec-client traffic line.

        Args:
            line: Line such as "TRAFFIC: [   3125]\t>> 01:44:41"

        Returns:
            CECCommand for the frame after the ">>" marker
        """
        _, marker, frame = line.partition('>>')
        tokens = frame.split()
        if not marker or not tokens:
            raise ValueError(f"No inbound frame in traffic line: {line!r}")
        return cls(tokens[0])

    @classmethod
    def build(cls, source: int, destination: int, opcode: int, parameters: bytes = b'') -> 'CECCommand':
        """
        Create a CECCommand for transmission.

        Args:
            source: CEC logical address of the sending device (0-15)
            destination: CEC logical address of destination device (0-15)
            opcode: CEC opcode
            parameters: Optional parameter bytes

        Returns:
            CECCommand instance ready for transmission
        """
        first_byte = (source << 4) | destination
        cmd_parts = [f"{first_byte:02X}", f"{opcode:02X}"]
        if parameters:
            cmd_parts.extend([f"{b:02X}" for b in parameters])
        command_string = ":".join(cmd_parts)

        instance = cls.__new__(cls)
        instance.initiator = source
        instance.destination = destination
        instance.opcode = opcode
        instance.parameters = parameters
        instance.command_string = command_string
        return instance

    def __str__(self):
        """Return the command string"""
        return self.command_string


class CECComms(ABC):
    """Abstract interface to the cec-client adapter process"""

    @abstractmethod
    def scan(self, device_type: str, osd_string: str) -> str:
        """Run a one-shot device scan and return its output; raises on failure"""

    @abstractmethod
    def init(self, device_type: str, osd_string: str,
             on_line: Callable[[str], None], on_exit: Callable[[Optional[int]], None]) -> bool:
        """Start the persistent process, delivering stdout lines to on_line"""

    @abstractmethod
    def write(self, line: str) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class RealCECComms(CECComms):
    """cec-client driven through subprocess pipes"""

    def __init__(self, client_path: str = 'cec-client', scan_timeout: float = 60.0):
        self.logger = logging.getLogger('RealCECComms')
        self.client_path = client_path
        self.scan_timeout = scan_timeout
        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._write_lock = threading.Lock()

    def scan(self, device_type: str, osd_string: str) -> str:
        """
        Run "echo scan | cec-client -s" and return stdout.

        Raises:
            OSError: cec-client could not be started
            subprocess.SubprocessError: cec-client failed or timed out
        """
        args = [self.client_path, '-s', '-t', device_type, '-o', osd_string, '-d', '1']
        self.logger.info(f"Scanning CEC bus: {' '.join(args)}")
        result = subprocess.run(
            args,
            input='scan\n',
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
            timeout=self.scan_timeout,
            check=True,
        )
        return result.stdout

    def init(self, device_type: str, osd_string: str,
             on_line: Callable[[str], None], on_exit: Callable[[Optional[int]], None]) -> bool:
        """Spawn the persistent cec-client and start the reader thread"""
        args = [self.client_path, '-t', device_type, '-o', osd_string, '-d', '8']

        previous = self._process
        if previous is not None and previous.stdin is not None:
            try:
                previous.stdin.close()
            except OSError:
                pass

        try:
            self._process = subprocess.Popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding='utf-8',
                errors='replace',
                bufsize=1,
            )
        except OSError as e:
            self.logger.error(f"Failed to start {self.client_path}: {e}")
            return False

        self.logger.info(f"Started {' '.join(args)} (pid {self._process.pid})")

        process = self._process
        self._reader = threading.Thread(
            target=self._read_loop, args=(process, on_line, on_exit),
            name='cec-client-reader', daemon=True
        )
        self._reader.start()
        return True

    def _read_loop(self, process: subprocess.Popen,
                   on_line: Callable[[str], None], on_exit: Callable[[Optional[int]], None]) -> None:
        for line in process.stdout:
            line = line.rstrip('\r\n')
            self.logger.debug(f"RX: {line}")
            try:
                on_line(line)
            except Exception as e:
                self.logger.error(f"Error handling cec-client line {line!r}: {e}")

        code = process.wait()
        self.logger.info(f"cec-client exited with code {code}")
        on_exit(code)

    def write(self, line: str) -> bool:
        """Write one command line to cec-client's stdin"""
        process = self._process
        if process is None or process.poll() is not None:
            self.logger.warning(f"cec-client not running, dropping command: {line}")
            return False

        try:
            with self._write_lock:
                process.stdin.write(line + '\n')
                process.stdin.flush()
        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to write to cec-client: {e}")
            return False

        self.logger.debug(f"TX: {line}")
        return True

    def close(self) -> None:
        """Terminate cec-client"""
        process, self._process = self._process, None
        if process is None:
            return

        try:
            process.stdin.close()
        except OSError:
            pass
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.logger.warning("cec-client did not terminate, killing it")
            process.kill()
        self.logger.info("cec-client closed")


class MockCECComms(CECComms):
    """Mock cec-client for testing"""

    def __init__(self, scan_output: Optional[str] = None):
        self.logger = logging.getLogger('MockCECComms')
        self.scan_output = scan_output
        self.written_lines: List[str] = []
        self.init_count = 0
        self._responses: Dict[str, List[str]] = {}
        self._on_line = None
        self._on_exit = None
        self._initialized = False

    def scan(self, device_type: str, osd_string: str) -> str:
        """Return the canned scan output, or fail like a missing cec-client"""
        if self.scan_output is None:
            raise subprocess.CalledProcessError(1, 'cec-client')
        return self.scan_output

    def init(self, device_type: str, osd_string: str,
             on_line: Callable[[str], None], on_exit: Callable[[Optional[int]], None]) -> bool:
        self._on_line = on_line
        self._on_exit = on_exit
        self._initialized = True
        self.init_count += 1
        self.logger.info("Mock cec-client started")
        return True

    def write(self, line: str) -> bool:
        """Record the line and play back any canned response"""
        if not self._initialized:
            self.logger.error("Mock cec-client not running")
            return False

        self.written_lines.append(line)
        self.logger.debug(f"Mock TX: {line}")

        for response in self._responses.get(line, []):
            self.simulate_line(response)
        return True

    def close(self) -> None:
        self._initialized = False
        self.logger.info("Mock cec-client closed")

    def respond(self, command: str, *lines: str) -> None:
        """Emit lines whenever command is written (replaces earlier responses)"""
        self._responses[command] = list(lines)

    def simulate_line(self, line: str) -> None:
        """Simulate cec-client printing a line (for testing)"""
        if self._on_line:
            self._on_line(line)

    def simulate_exit(self, code: Optional[int] = 1) -> None:
        """Simulate cec-client exiting (for testing)"""
        self._initialized = False
        if self._on_exit:
            self._on_exit(code)
