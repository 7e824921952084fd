# app/utils/security.py

"""
Hash e verificação da senha do admin.
passlib com sha256_crypt; o hash fica em AUTH_PASSWORD_HASH, nunca a senha.
"""

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["sha256_crypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """
    Gera o hash para colocar em AUTH_PASSWORD_HASH.

    :param password: senha em texto puro
    :return: hash sha256_crypt
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Confere a senha contra o hash configurado. Sem hash configurado, nada confere.
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)
