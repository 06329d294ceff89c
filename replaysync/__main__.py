from replaysync.main import run

run()
