from prim.commands import build, clean, deploy, init, status, test

COMMAND_MODULES = [init, build, deploy, status, test, clean]
