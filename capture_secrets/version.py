"""Capture Secrets Meta information.
   Capture Secrets keeps decryption secrets and private keys for traffic analysis.
"""
__title__ = 'capture_secrets'
__description__ = (
   'Capture Secrets keeps secret-block handlers and private keys '
   'used to decrypt captured traffic.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/capture-secrets'
