import uvicorn

from mirror_proxy.vars import HOST, PORT


def main():
    uvicorn.run("mirror_proxy.server:app", host=HOST, port=PORT, proxy_headers=True)


if __name__ == "__main__":
    main()
