"""Secure Defaults Meta information.
   Secure Defaults is a preferences store that encrypts every value
   with a password-derived key kept in a keychain.
"""
__title__ = 'secure_defaults'
__description__ = (
   'Encrypted key-value preferences store with password-derived '
   'AES-256 keys held in a keychain.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/secure-defaults'
