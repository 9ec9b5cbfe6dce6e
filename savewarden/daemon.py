"""
Headless auto-save: runs the scheduler for one profile until signalled,
plus systemd/schtasks service definitions for it.
"""
import os
import sys
import threading
from typing import Callable, Optional

from .config import get_config_dir, load_profile, load_settings
from .errors import DaemonError
from .models import BackupReport
from .orchestrator import BackupOrchestrator
from .scheduler import AutoSaveScheduler
from .utils import setup_signal_handlers


class DaemonProcess:
    def __init__(self, profile_name: str, on_report: Optional[Callable[[BackupReport], None]] = None):
        self.profile = profile_name
        self.on_report = on_report
        self.scheduler: Optional[AutoSaveScheduler] = None
        self.pid_file = get_config_dir() / f"daemon_{profile_name}.pid"
        self._stopped = threading.Event()

    def is_running(self) -> bool:
        """Check if daemon is already running via PID file."""
        if not self.pid_file.exists():
            return False
        try:
            pid = int(self.pid_file.read_text())
            # Cross-platform basic check
            if sys.platform == "win32":
                import ctypes
                kernel32 = ctypes.windll.kernel32
                process = kernel32.OpenProcess(0x1000, 0, pid)
                if process:
                    kernel32.CloseHandle(process)
                    return True
                return False
            else:
                os.kill(pid, 0)
                return True
        except Exception:
            self.pid_file.unlink(missing_ok=True)
            return False

    def start(self, block: bool = True) -> None:
        if self.is_running():
            raise DaemonError(f"Daemon for profile '{self.profile}' is already running.")

        settings = load_settings()
        profile = load_profile(self.profile)
        orchestrator = BackupOrchestrator(settings, settings_loader=load_settings)
        self.scheduler = AutoSaveScheduler(orchestrator, on_report=self.on_report)

        self.pid_file.write_text(str(os.getpid()))
        self.scheduler.start(profile)

        if not block:
            return
        setup_signal_handlers()
        try:
            while not self._stopped.wait(1):
                pass
        except (KeyboardInterrupt, SystemExit):
            pass
        finally:
            self.stop()

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
        self._stopped.set()
        self.pid_file.unlink(missing_ok=True)


def generate_systemd_unit(profile_name: str) -> str:
    """Generate systemd .service content."""
    python_exec = sys.executable
    savewarden_cmd = f'{python_exec} -m savewarden.cli daemon "{profile_name}"'

    return f"""[Unit]
Description=SaveWarden auto-save ({profile_name})

[Service]
Type=simple
ExecStart={savewarden_cmd}
Restart=on-failure
RestartSec=30
KillSignal=SIGTERM
StandardOutput=journal
StandardError=journal
SyslogIdentifier=savewarden

[Install]
WantedBy=default.target
"""

def generate_windows_task_xml(profile_name: str) -> str:
    """Generate an XML definition for Windows Task Scheduler (schtasks.exe), started at logon."""
    python_exec = sys.executable
    savewarden_cmd = f'-m savewarden.cli daemon "{profile_name}"'

    xml = f"""<?xml version="1.0" encoding="UTF-16"?>
<Task version="1.2" xmlns="http://schemas.microsoft.com/windows/2004/02/mit/task">
  <RegistrationInfo>
    <Description>SaveWarden auto-save for profile: {profile_name}</Description>
  </RegistrationInfo>
  <Triggers>
    <LogonTrigger>
      <Enabled>true</Enabled>
    </LogonTrigger>
  </Triggers>
  <Principals>
    <Principal>
      <LogonType>InteractiveToken</LogonType>
      <RunLevel>LeastPrivilege</RunLevel>
    </Principal>
  </Principals>
  <Settings>
    <MultipleInstancesPolicy>IgnoreNew</MultipleInstancesPolicy>
    <DisallowStartIfOnBatteries>false</DisallowStartIfOnBatteries>
    <StopIfGoingOnBatteries>false</StopIfGoingOnBatteries>
    <ExecutionTimeLimit>PT0S</ExecutionTimeLimit>
    <Priority>7</Priority>
  </Settings>
  <Actions Context="Author">
    <Exec>
      <Command>{python_exec}</Command>
      <Arguments>{savewarden_cmd}</Arguments>
    </Exec>
  </Actions>
</Task>"""
    return xml
