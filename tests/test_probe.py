"""Tests for remote state probes."""

import pytest

from aymc_remote.models import BackendConfig, DiskSpace, parse_backend_env
from aymc_remote.ssh.probe import parse_disk_space
from aymc_remote.utils.errors import ChannelError, CommandError, NotConnectedError, ParseError
from tests.fake_ssh import BACKEND_ENV, DF_ROOT, OS_RELEASE_UBUNTU

EXISTS_BACKEND = "test -e /opt/aymc/backend/aymc-backend && echo 'exists' || echo 'not_exists'"
EXISTS_AGENT = "test -e /opt/aymc/agent/aymc-agent && echo 'exists' || echo 'not_exists'"


class TestParseBackendEnv:
    """Tests for backend.env parsing."""

    def test_recognized_keys(self):
        port, env = parse_backend_env('APP_PORT=9090\n# comment\nAPP_ENV="staging"\n')
        assert port == "9090"
        assert env == "staging"

    def test_defaults_when_absent(self):
        assert parse_backend_env("DB_HOST=localhost\n\n") == ("8080", "production")

    def test_splits_at_first_equals_and_trims(self):
        port, env = parse_backend_env('  APP_ENV = "a=b"  \nAPP_PORT= 7000 ')
        assert env == "a=b"
        assert port == "7000"

    def test_ignores_lines_without_equals(self):
        assert parse_backend_env("export\nAPP_PORT=1\n") == ("1", "production")

    def test_backend_config_urls(self):
        config = BackendConfig.from_env("10.0.0.5", 'APP_PORT=9090\n# comment\nAPP_ENV="staging"\n')
        assert config.api_url == "http://10.0.0.5:9090/api/v1"
        assert config.ws_url == "ws://10.0.0.5:9090/api/v1/ws"
        assert config.port == "9090"
        assert config.environment == "staging"


class TestParseDiskSpace:
    """Tests for df row parsing."""

    def test_parses_row(self):
        space = parse_disk_space("/dev/sda1 10000 4000 6000 40% /")
        assert space == DiskSpace(total_mb=10000, used_mb=4000, available_mb=6000, percent_used=40)

    def test_percent_truncated(self):
        assert parse_disk_space("/dev/vda1 3 2 1 67% /").percent_used == 66

    def test_zero_total(self):
        assert parse_disk_space("overlay 0 0 0 - /").percent_used == 0

    def test_non_numeric_fields_count_as_zero(self):
        space = parse_disk_space("/dev/sda1 1000 x 900 10% /")
        assert space.used_mb == 0
        assert space.total_mb == 1000

    def test_too_few_fields(self):
        with pytest.raises(ParseError) as exc_info:
            parse_disk_space("/dev/sda1 10000 4000 6000")
        assert exc_info.value.output == "/dev/sda1 10000 4000 6000"


class TestFileProbes:
    @pytest.mark.asyncio
    async def test_file_exists(self, probe, fake_ssh):
        fake_ssh.respond("test -e /etc/x && echo 'exists' || echo 'not_exists'", "exists\n")
        assert await probe.file_exists("/etc/x") is True

    @pytest.mark.asyncio
    async def test_file_missing(self, probe, fake_ssh):
        fake_ssh.respond("test -e /etc/x && echo 'exists' || echo 'not_exists'", "not_exists\n")
        assert await probe.file_exists("/etc/x") is False

    @pytest.mark.asyncio
    async def test_file_exists_propagates_errors(self, probe, fake_ssh):
        fake_ssh.fail(
            "test -e /etc/x && echo 'exists' || echo 'not_exists'",
            ChannelError("channel closed"),
        )
        with pytest.raises(ChannelError):
            await probe.file_exists("/etc/x")

    @pytest.mark.asyncio
    async def test_read_file_verbatim(self, probe, fake_ssh):
        fake_ssh.respond("cat /etc/hosts", "127.0.0.1 localhost\n")
        assert await probe.read_file("/etc/hosts") == "127.0.0.1 localhost\n"


class TestServiceProbes:
    @pytest.mark.asyncio
    async def test_service_active(self, probe, fake_ssh):
        fake_ssh.respond("systemctl is-active aymc-backend", "active\n")
        assert await probe.is_service_running("aymc-backend") is True

    @pytest.mark.asyncio
    async def test_service_inactive_exit_code(self, probe, fake_ssh):
        fake_ssh.respond("systemctl is-active aymc-backend", "inactive\n", exit_code=3)
        assert await probe.is_service_running("aymc-backend") is False

    @pytest.mark.asyncio
    async def test_service_channel_failure(self, probe, fake_ssh):
        fake_ssh.fail("systemctl is-active aymc-backend", ChannelError("channel open failed"))
        assert await probe.is_service_running("aymc-backend") is False

    @pytest.mark.asyncio
    async def test_service_not_connected_propagates(self, probe, fake_ssh):
        fake_ssh.fail("systemctl is-active aymc-backend", NotConnectedError())
        with pytest.raises(NotConnectedError):
            await probe.is_service_running("aymc-backend")

    @pytest.mark.asyncio
    async def test_service_other_text(self, probe, fake_ssh):
        fake_ssh.respond("systemctl is-active aymc-backend", "activating\n")
        assert await probe.is_service_running("aymc-backend") is False

    @pytest.mark.asyncio
    async def test_check_services_all_false(self, probe, fake_ssh):
        fake_ssh.respond(EXISTS_BACKEND, "not_exists\n")
        fake_ssh.respond(EXISTS_AGENT, "not_exists\n")
        for name in ("aymc-backend", "aymc-agent", "postgresql"):
            fake_ssh.respond(f"systemctl is-active {name}", "inactive\n", exit_code=3)

        status = await probe.check_services()

        assert not status.backend_installed
        assert not status.agent_installed
        assert not status.backend_running
        assert not status.agent_running
        assert not status.postgresql_running
        assert status.backend_path is None
        assert status.agent_path is None

    @pytest.mark.asyncio
    async def test_check_services_installed(self, probe, fake_ssh):
        fake_ssh.respond(EXISTS_BACKEND, "exists\n")
        fake_ssh.respond(EXISTS_AGENT, "exists\n")
        fake_ssh.respond("systemctl is-active aymc-backend", "active\n")
        fake_ssh.respond("systemctl is-active aymc-agent", "failed\n", exit_code=3)
        fake_ssh.respond("systemctl is-active postgresql", "active\n")

        status = await probe.check_services()

        assert status.backend_installed and status.agent_installed
        assert status.backend_running and not status.agent_running
        assert status.postgresql_running
        assert status.backend_path == "/opt/aymc/backend"
        assert status.agent_path == "/opt/aymc/agent"

    @pytest.mark.asyncio
    async def test_check_services_isolates_failures(self, probe, fake_ssh):
        fake_ssh.fail(EXISTS_BACKEND, ChannelError("channel failed"))
        fake_ssh.respond(EXISTS_AGENT, "exists\n")
        fake_ssh.respond("systemctl is-active postgresql", "active\n")

        status = await probe.check_services()

        assert status.backend_installed is False
        assert status.agent_installed is True
        assert status.postgresql_running is True
        assert len(fake_ssh.commands) == 5


class TestBackendConfigProbe:
    @pytest.mark.asyncio
    async def test_reads_env_file(self, probe, fake_ssh):
        fake_ssh.respond("cat /etc/aymc/backend.env", BACKEND_ENV)
        config = await probe.get_backend_config()
        assert config.api_url == "http://vps.example.com:9090/api/v1"
        assert config.ws_url == "ws://vps.example.com:9090/api/v1/ws"
        assert config.environment == "staging"

    @pytest.mark.asyncio
    async def test_missing_file_propagates(self, probe, fake_ssh):
        fake_ssh.respond("cat /etc/aymc/backend.env", "", exit_code=1, stderr="No such file")
        with pytest.raises(CommandError, match="/etc/aymc/backend.env"):
            await probe.get_backend_config()


class TestHostProbes:
    @pytest.mark.asyncio
    async def test_disk_space(self, probe, fake_ssh):
        fake_ssh.respond("df -m / | tail -1", DF_ROOT)
        space = await probe.get_disk_space()
        assert space.percent_used == 40

    @pytest.mark.asyncio
    async def test_disk_space_unparseable(self, probe, fake_ssh):
        fake_ssh.respond("df -m / | tail -1", "df: error\n")
        with pytest.raises(ParseError):
            await probe.get_disk_space()

    @pytest.mark.asyncio
    async def test_disk_space_error_text_row_is_zeroed(self, probe, fake_ssh):
        fake_ssh.respond("df -m / | tail -1", "df: /: No such device\n")
        space = await probe.get_disk_space()
        assert space == DiskSpace(total_mb=0, used_mb=0, available_mb=0, percent_used=0)

    @pytest.mark.asyncio
    async def test_port_check_channel_failure_is_negative(self, probe, fake_ssh):
        fake_ssh.fail(
            "netstat -tuln | grep :8080 || echo 'AVAILABLE'",
            ChannelError("Could not execute 'netstat'"),
        )
        assert await probe.check_port_available(8080) is False

    @pytest.mark.asyncio
    async def test_sudo_and_docker_channel_failure(self, probe, fake_ssh):
        fake_ssh.fail("sudo -n true 2>&1", ChannelError("channel closed"))
        fake_ssh.fail("which docker", ChannelError("channel closed"))
        assert await probe.has_sudo_access() is False
        assert await probe.check_docker() is False

    @pytest.mark.asyncio
    async def test_port_available(self, probe, fake_ssh):
        fake_ssh.respond("netstat -tuln | grep :8080 || echo 'AVAILABLE'", "AVAILABLE\n")
        assert await probe.check_port_available(8080) is True

    @pytest.mark.asyncio
    async def test_port_in_use(self, probe, fake_ssh):
        fake_ssh.respond(
            "netstat -tuln | grep :8080 || echo 'AVAILABLE'",
            "tcp6  0  0 :::8080  :::*  LISTEN\n",
        )
        assert await probe.check_port_available(8080) is False

    @pytest.mark.asyncio
    async def test_port_check_failure_is_negative(self, probe, fake_ssh):
        fake_ssh.respond("netstat -tuln | grep :8080 || echo 'AVAILABLE'", "", exit_code=127)
        assert await probe.check_port_available(8080) is False

    @pytest.mark.asyncio
    async def test_sudo(self, probe, fake_ssh):
        assert await probe.has_sudo_access() is True
        fake_ssh.respond("sudo -n true 2>&1", "sudo: a password is required\n", exit_code=1)
        assert await probe.has_sudo_access() is False

    @pytest.mark.asyncio
    async def test_host_info(self, probe, fake_ssh):
        fake_ssh.respond("cat /etc/os-release", OS_RELEASE_UBUNTU)
        info = await probe.get_host_info()
        assert info.name == "Ubuntu"
        assert info.distro == "ubuntu"
        assert info.version.startswith("22.04")

    @pytest.mark.asyncio
    async def test_docker_missing(self, probe, fake_ssh):
        fake_ssh.respond("which docker", "", exit_code=1)
        assert await probe.check_docker() is False
        assert "docker ps" not in fake_ssh.commands

    @pytest.mark.asyncio
    async def test_system_logs(self, probe, fake_ssh):
        fake_ssh.respond(
            "journalctl -u aymc-backend -n 2 --no-pager",
            "Oct 18 started\nOct 18 listening on :8080\n",
        )
        assert await probe.get_system_logs("aymc-backend", 2) == [
            "Oct 18 started",
            "Oct 18 listening on :8080",
        ]
