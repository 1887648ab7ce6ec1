PASSWORD = "CorrectHorse42"
API = "/api/v1"


def login(client, email, password=PASSWORD):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password})


def cookie(client, name):
    found = client.get_cookie(name)
    return found.value if found is not None else None
