import os
import subprocess
import sys
import threading

import pytest

from cec_comms import CECCommand, MockCECComms, RealCECComms


class TestCECCommand:
    """Test CECCommand class"""

    def test_parse_command_string(self):
        cmd = CECCommand("01:44:41")

        assert cmd.command_string == "01:44:41"
        assert cmd.initiator == 0
        assert cmd.destination == 1
        assert cmd.opcode == 0x44
        assert cmd.parameters == b'\x41'

    def test_parse_lower_case(self):
        cmd = CECCommand("01:8b:41")

        assert cmd.opcode == 0x8B
        assert cmd.parameters == b'\x41'

    def test_parse_command_no_parameters(self):
        cmd = CECCommand("10:36")

        assert cmd.initiator == 1
        assert cmd.destination == 0
        assert cmd.opcode == 0x36
        assert cmd.parameters == b''

    def test_invalid_command_string(self):
        with pytest.raises(ValueError):
            CECCommand("10")

    def test_from_traffic_line(self):
        """Test extracting the inbound frame from a cec-client traffic line"""
        cmd = CECCommand.from_traffic_line("TRAFFIC: [           3125]\t>> 01:44:41")

        assert cmd.initiator == 0
        assert cmd.destination == 1
        assert cmd.opcode == 0x44
        assert str(cmd) == "01:44:41"

    def test_from_traffic_line_without_frame(self):
        with pytest.raises(ValueError):
            CECCommand.from_traffic_line("TRAFFIC: [  3125]\t<< 10:8f")
        with pytest.raises(ValueError):
            CECCommand.from_traffic_line("TRAFFIC: [  3125]\t>>")

    def test_build_command(self):
        cmd = CECCommand.build(source=1, destination=0x0F, opcode=0x82, parameters=b'\x20\x00')

        assert cmd.command_string == "1F:82:20:00"
        assert cmd.initiator == 1
        assert cmd.destination == 0x0F
        assert cmd.opcode == 0x82
        assert cmd.parameters == b'\x20\x00'

    def test_build_without_parameters(self):
        assert str(CECCommand.build(source=4, destination=0, opcode=0x8F)) == "40:8F"


class TestMockCECComms:
    """Test MockCECComms class"""

    def test_scan_returns_canned_output(self):
        mock = MockCECComms(scan_output="device #0: TV\n")
        assert mock.scan("p", "CEC-Control") == "device #0: TV\n"

    def test_scan_without_output_fails(self):
        with pytest.raises(subprocess.CalledProcessError):
            MockCECComms().scan("p", "CEC-Control")

    def test_write_before_init_fails(self):
        mock = MockCECComms()

        assert mock.write("pow 0") is False
        assert mock.written_lines == []

    def test_write_records_lines(self):
        mock = MockCECComms()
        mock.init("p", "CEC-Control", lambda line: None, lambda code: None)

        assert mock.write("pow 0") is True
        assert mock.write("volup") is True
        assert mock.written_lines == ["pow 0", "volup"]

    def test_canned_responses(self):
        """Test that responses are played back through the line callback"""
        mock = MockCECComms()
        lines = []
        mock.init("p", "CEC-Control", lines.append, lambda code: None)
        mock.respond("pow 0", "power status: on")

        mock.write("pow 0")
        mock.write("pow 1")

        assert lines == ["power status: on"]

    def test_simulate_exit(self):
        mock = MockCECComms()
        codes = []
        mock.init("p", "CEC-Control", lambda line: None, codes.append)

        mock.simulate_exit(3)

        assert codes == [3]
        assert mock.write("pow 0") is False


def write_script(path, body):
    path.write_text("#!/bin/sh\n" + body)
    os.chmod(path, 0o755)
    return str(path)


@pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh")
class TestRealCECComms:
    """Test RealCECComms against a shell script standing in for cec-client"""

    def test_scan(self, tmp_path):
        script = write_script(tmp_path / "fake-cec-client", 'read cmd\necho "device #0: TV"\necho "got $cmd $*"\n')
        comms = RealCECComms(client_path=script)

        output = comms.scan("p", "CEC-Control")

        assert "device #0: TV" in output
        assert "got scan -s -t p -o CEC-Control -d 1" in output

    def test_scan_failure(self, tmp_path):
        script = write_script(tmp_path / "fake-cec-client", "exit 1\n")
        comms = RealCECComms(client_path=script)

        with pytest.raises(subprocess.CalledProcessError):
            comms.scan("p", "CEC-Control")

    def test_missing_executable(self, tmp_path):
        comms = RealCECComms(client_path=str(tmp_path / "missing"))

        with pytest.raises(OSError):
            comms.scan("p", "CEC-Control")
        assert comms.init("p", "CEC-Control", lambda line: None, lambda code: None) is False

    def test_persistent_process(self, tmp_path):
        """Test line delivery, writing commands and exit notification"""
        script = write_script(
            tmp_path / "fake-cec-client",
            'echo "waiting for input"\nwhile read line; do echo "got $line"; done\nexit 0\n'
        )
        comms = RealCECComms(client_path=script)
        lines = []
        got_reply = threading.Event()
        exited = threading.Event()

        def on_line(line):
            lines.append(line)
            if line == "got pow 0":
                got_reply.set()

        assert comms.init("p", "CEC-Control", on_line, lambda code: exited.set()) is True
        assert comms.write("pow 0") is True
        assert got_reply.wait(5)

        comms.close()
        assert exited.wait(5)
        assert lines == ["waiting for input", "got pow 0"]
        assert comms.write("pow 0") is False

    def test_scan_replaces_undecodable_bytes(self, tmp_path):
        """Test that a vendor string with invalid UTF-8 does not break the scan"""
        script = write_script(
            tmp_path / "fake-cec-client",
            "read cmd\nprintf 'device #0: TV\\nvendor: Sams\\377ung\\n'\n"
        )
        comms = RealCECComms(client_path=script)

        output = comms.scan("p", "CEC-Control")

        assert "vendor: Sams\ufffdung" in output

    def test_respawn_closes_previous_stdin(self, tmp_path):
        script = write_script(tmp_path / "fake-cec-client", 'echo "waiting for input"\nexit 0\n')
        comms = RealCECComms(client_path=script)
        exited = threading.Event()

        assert comms.init("p", "CEC-Control", lambda line: None, lambda code: exited.set()) is True
        first = comms._process
        assert exited.wait(5)

        assert comms.init("p", "CEC-Control", lambda line: None, lambda code: None) is True
        assert first.stdin.closed
        assert comms._process is not first
        comms.close()
