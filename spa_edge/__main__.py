import uvicorn

from spa_edge.vars import HOST, LOG_LEVEL, PORT


def main():
    uvicorn.run("spa_edge.server:app", host=HOST, port=PORT, log_level=LOG_LEVEL)


if __name__ == "__main__":
    main()
