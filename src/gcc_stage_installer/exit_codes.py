"""Process exit codes shared by the install and uninstall commands."""

SUCCESS = 0
USAGE = 1
# install: source directory missing; uninstall: no prefix could be resolved
NOT_FOUND = 2
NOT_A_TOOLCHAIN = 3
PRIVILEGE = 4
PARTIAL_FAILURE = 5
