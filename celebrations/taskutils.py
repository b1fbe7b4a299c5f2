# Utilities for the periodic management commands.
##################################################

import os, os.path, atexit, errno

from django.conf import settings

class ProcessAlreadyRunning(Exception):
	def __init__(self, name, pid):
		self.name = name
		self.pid = pid
		super(ProcessAlreadyRunning, self).__init__("Another %s process is already running (pid %d)." % (name, pid))

def get_pid_dir():
	if os.access('/var/run', os.W_OK):
		return '/var/run'
	return os.path.join(settings.BASE_DIR, 'local')

def exclusive_process(name, piddir=None):
	# Ensures that only one process globally named `name` runs at a time,
	# e.g. so that two overlapping cron runs of a sweep don't both email
	# the same donors. Raises ProcessAlreadyRunning if another is live.
	# The pid file is removed when this process exits.

	pidfile = os.path.join(piddir or get_pid_dir(), '%s.pid' % name)
	mypid = os.getpid()

	# Take a lock on the pid file's directory entry with O_EXCL. If
	# the file is left over from a process that died, claim it.
	try:
		fd = os.open(pidfile, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
	except FileExistsError:
		with open(pidfile, 'r+') as f:
			try:
				existing_pid = int(f.read().strip())
			except ValueError:
				existing_pid = None # not a pid

			if existing_pid and existing_pid != mypid and is_pid_valid(existing_pid):
				raise ProcessAlreadyRunning(name, existing_pid)

			f.seek(0)
			f.write(str(mypid))
			f.truncate()
	else:
		with os.fdopen(fd, 'w') as f:
			f.write(str(mypid))

	atexit.register(clear_pid, pidfile, mypid)
	return pidfile

def clear_pid(pidfile, pid):
	# Only remove the file if it is still ours.
	try:
		with open(pidfile) as f:
			if f.read().strip() != str(pid):
				return
		os.unlink(pidfile)
	except FileNotFoundError:
		pass

def is_pid_valid(pid):
	"""Checks whether a pid is the process ID of a currently running process."""
	if pid <= 0: raise ValueError('Invalid PID.')
	try:
		os.kill(pid, 0)
	except OSError as err:
		if err.errno == errno.ESRCH: # No such process
			return False
		elif err.errno == errno.EPERM: # Not permitted to send signal
			return True
		raise
	return True
