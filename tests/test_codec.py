import json
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest import mock

from redblack.codec import black_to_red, open_black, red_to_black, try_black_to_red
from redblack.crypto.keys import generate_keypair
from redblack.errors import (
    DecryptionFailure,
    DeserializationError,
    InvalidProtocolEnvelope,
    KeyFormatError,
    MalformedEnvelope,
    SecurityEvent,
    SerializationError,
    SignatureVerificationFailure,
)
from redblack.protocol.constants import MAX_HEX_LENGTH, MAX_JSON_DEPTH, MAX_JSON_KEYS, MAX_MSG_BYTES, ErrorKind
from redblack.protocol.messages import BlackMessage, Request, Response, make_hello, make_request, make_response
from redblack.protocol.validation import is_black_msg


def flip_byte(hexstr: str, index: int) -> str:
    b = bytearray(bytes.fromhex(hexstr))
    b[index] ^= 0x01
    return b.hex()


class TestRoundTrip(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.alice = generate_keypair()
        cls.bob = generate_keypair()

    def test_round_trip_plain_objects(self):
        messages = [
            {'jsonrpc': '2.0', 'method': 'doSomething', 'params': ['x', 1], 'id': 5},
            {'jsonrpc': '2.0', 'result': {'nested': {'list': [1, 2.5, None, True]}}, 'id': 9},
            {'unicode': 'žluťoučký kůň 🐎'},
            [1, 2, 3],
            'just a string',
            {},
        ]
        for message in messages:
            with self.subTest(message=message):
                black = red_to_black(self.alice.private_key, self.bob.public_key, message)
                self.assertEqual(black_to_red(self.bob.private_key, black), message)

    def test_round_trip_models(self):
        request = make_request('doSomething', ['x', 1], 5)
        black = red_to_black(self.alice.private_key, self.bob.public_key, request)
        self.assertEqual(black_to_red(self.bob.private_key, black), request.to_wire())
        self.assertEqual(open_black(self.bob.private_key, black), request)

    def test_envelope_shape(self):
        black = red_to_black(self.alice.private_key, self.bob.public_key, {'a': 1})
        self.assertIsInstance(black, BlackMessage)
        self.assertTrue(is_black_msg(black))
        self.assertEqual(black.spkhex, self.alice.public_key)
        self.assertEqual(set(json.loads(black.to_json())), {'msghex', 'sighex', 'spkhex'})
        # DER encoded ECDSA signature
        self.assertTrue(black.sighex.startswith('30'))

    def test_no_plaintext_in_output(self):
        marker = 'this-should-never-appear-on-the-wire'
        black = red_to_black(self.alice.private_key, self.bob.public_key, {'secret': marker})
        wire = black.to_json()
        self.assertNotIn(marker, wire)
        self.assertNotIn(marker.encode().hex(), wire)

    def test_randomized_ciphertext(self):
        message = {'a': 1}
        first = red_to_black(self.alice.private_key, self.bob.public_key, message)
        second = red_to_black(self.alice.private_key, self.bob.public_key, message)
        self.assertNotEqual(first.msghex, second.msghex)
        self.assertEqual(first.spkhex, second.spkhex)

    def test_accepts_mapping_envelope(self):
        black = red_to_black(self.alice.private_key, self.bob.public_key, {'a': 1})
        self.assertEqual(black_to_red(self.bob.private_key, json.loads(black.to_json())), {'a': 1})

    def test_end_to_end_scenario(self):
        a, b = generate_keypair(), generate_keypair()
        hello = make_hello(b.public_key)
        request = {'jsonrpc': '2.0', 'method': 'doSomething', 'params': ['x', 1], 'id': 5}

        black_request = red_to_black(a.private_key, hello.session_public_key, request)
        received = black_to_red(b.private_key, black_request)
        self.assertEqual(received, request)

        response = {'jsonrpc': '2.0', 'result': {'ok': True}, 'id': received['id']}
        black_response = red_to_black(b.private_key, black_request.spkhex, response)
        self.assertEqual(black_to_red(a.private_key, black_response), response)

        self.assertIsInstance(open_black(b.private_key, black_request), Request)
        self.assertIsInstance(open_black(a.private_key, black_response), Response)


class TestEncoderFailures(unittest.TestCase):

    def test_bad_keys(self):
        keys = generate_keypair()
        with self.assertRaises(KeyFormatError):
            red_to_black('nothex', keys.public_key, {})
        with self.assertRaises(KeyFormatError):
            red_to_black(keys.private_key, 'nothex', {})
        with self.assertRaises(KeyFormatError):
            red_to_black(keys.private_key, keys.private_key, {})

    def test_not_serializable(self):
        keys = generate_keypair()
        for message in ({'a': object()}, {'a': float('inf')}, {1, 2}):
            with self.subTest(message=message), self.assertRaises(SerializationError):
                red_to_black(keys.private_key, keys.public_key, message)


def nest(depth: int):
    value = 1
    for _ in range(depth):
        value = [value]
    return value


class TestEncoderLimits(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.alice = generate_keypair()
        cls.bob = generate_keypair()

    def seal(self, message):
        return red_to_black(self.alice.private_key, self.bob.public_key, message)

    def test_depth_limit(self):
        message = nest(MAX_JSON_DEPTH)
        self.assertEqual(black_to_red(self.bob.private_key, self.seal(message)), message)
        with self.assertRaises(SerializationError):
            self.seal(nest(MAX_JSON_DEPTH + 1))
        with self.assertRaises(SerializationError):
            self.seal({'params': nest(40)})

    def test_key_count_limit(self):
        message = {f'k{i}': i for i in range(MAX_JSON_KEYS)}
        self.assertEqual(black_to_red(self.bob.private_key, self.seal(message)), message)
        with self.assertRaises(SerializationError):
            self.seal({f'k{i}': i for i in range(MAX_JSON_KEYS + 1)})

    def test_size_limit(self):
        # two bytes of quotes around the string
        message = 'a' * (MAX_MSG_BYTES - 2)
        black = self.seal(message)
        self.assertLessEqual(len(black.msghex), MAX_HEX_LENGTH)
        self.assertEqual(black_to_red(self.bob.private_key, black), message)
        with self.assertRaises(SerializationError):
            self.seal('a' * (MAX_MSG_BYTES - 1))
        with self.assertRaises(SerializationError):
            self.seal({'blob': 'a' * 300000})

    def test_limits_apply_to_models(self):
        with self.assertRaises(SerializationError):
            self.seal(make_request('doSomething', [nest(MAX_JSON_DEPTH)], 1))
        with self.assertRaises(SerializationError):
            self.seal(make_response({'blob': 'a' * MAX_MSG_BYTES}, 1))


class TestConcurrency(unittest.TestCase):

    def test_parallel_seal_and_open(self):
        alice, bob = generate_keypair(), generate_keypair()

        def exchange(n):
            request = make_request('doSomething', [n], n)
            received = open_black(bob.private_key, red_to_black(alice.private_key, bob.public_key, request))
            response = make_response({'n': received.params[0]}, received.id)
            return open_black(alice.private_key, red_to_black(bob.private_key, alice.public_key, response))

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(exchange, range(64)))
        self.assertEqual(results, [make_response({'n': n}, n) for n in range(64)])


class TestDecoderFailures(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.alice = generate_keypair()
        cls.bob = generate_keypair()
        cls.black = red_to_black(cls.alice.private_key, cls.bob.public_key, make_response({'ok': True}, 1))

    def tamper(self, **fields):
        return self.black.model_copy(update=fields)

    def test_malformed_envelope(self):
        bad_envelopes = [
            None,
            {'msghex': self.black.msghex},
            self.tamper(msghex=''),
            self.tamper(sighex=''),
            self.tamper(msghex='zz'),
            self.tamper(sighex=self.black.sighex + 'a'),
            self.tamper(msghex=' ' + self.black.msghex),
            {'msghex': 12, 'sighex': self.black.sighex, 'spkhex': self.black.spkhex},
        ]
        for envelope in bad_envelopes:
            with self.subTest(envelope=envelope), self.assertRaises(MalformedEnvelope):
                black_to_red(self.bob.private_key, envelope)

    def test_bad_sender_key(self):
        with self.assertRaises(KeyFormatError):
            black_to_red(self.bob.private_key, self.tamper(spkhex='02' + '00' * 31))

    def test_bad_recipient_key(self):
        with self.assertRaises(KeyFormatError):
            black_to_red('00', self.black)

    def test_tampered_ciphertext(self):
        length = len(self.black.msghex) // 2
        for index in (0, 64, 65, 80, 97, length - 1):
            with self.subTest(index=index), self.assertRaises(SignatureVerificationFailure):
                black_to_red(self.bob.private_key, self.tamper(msghex=flip_byte(self.black.msghex, index)))

    def test_tampered_signature(self):
        length = len(self.black.sighex) // 2
        for index in range(length):
            with self.subTest(index=index), self.assertRaises(SecurityEvent):
                black_to_red(self.bob.private_key, self.tamper(sighex=flip_byte(self.black.sighex, index)))

    def test_substituted_sender(self):
        mallory = generate_keypair()
        with self.assertRaises(SignatureVerificationFailure):
            black_to_red(self.bob.private_key, self.tamper(spkhex=mallory.public_key))

    def test_signature_checked_before_decryption(self):
        tampered = self.tamper(msghex=flip_byte(self.black.msghex, 100))
        with mock.patch('redblack.codec.hybrid.decrypt') as decrypt:
            with self.assertRaises(SignatureVerificationFailure):
                black_to_red(self.bob.private_key, tampered)
            decrypt.assert_not_called()

    def test_wrong_recipient(self):
        eve = generate_keypair()
        with self.assertRaises(DecryptionFailure):
            black_to_red(eve.private_key, self.black)
        with self.assertRaises(DecryptionFailure):
            black_to_red(self.alice.private_key, self.black)

    def test_resigned_truncated_ciphertext(self):
        # a validly signed envelope whose ciphertext is too short to decrypt
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.asymmetric import ec
        from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
        from redblack.crypto.keys import load_private_key
        from redblack.crypto.primitives import sha256

        ct = bytes.fromhex(self.black.msghex)[:40]
        sig = load_private_key(self.alice.private_key).sign(sha256(ct), ec.ECDSA(Prehashed(hashes.SHA256())))
        envelope = self.tamper(msghex=ct.hex(), sighex=sig.hex())
        with self.assertRaises(DecryptionFailure):
            black_to_red(self.bob.private_key, envelope)

    def test_not_json_payload(self):
        from redblack.crypto import hybrid
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.asymmetric import ec
        from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
        from redblack.crypto.keys import load_private_key
        from redblack.crypto.primitives import sha256

        for payload in (b'{not json', b'\xff\xfe'):
            with self.subTest(payload=payload):
                ct = hybrid.encrypt(self.bob.public_key, payload)
                sig = load_private_key(self.alice.private_key).sign(sha256(ct), ec.ECDSA(Prehashed(hashes.SHA256())))
                envelope = BlackMessage(msghex=ct.hex(), sighex=sig.hex(), spkhex=self.alice.public_key)
                with self.assertRaises(DeserializationError):
                    black_to_red(self.bob.private_key, envelope)

    def test_open_black_rejects_non_jsonrpc(self):
        black = red_to_black(self.alice.private_key, self.bob.public_key, {'jsonrpc': '1.0', 'id': 1, 'method': 'x'})
        self.assertEqual(black_to_red(self.bob.private_key, black)['jsonrpc'], '1.0')
        with self.assertRaises(InvalidProtocolEnvelope):
            open_black(self.bob.private_key, black)


class TestDecodedResult(unittest.TestCase):

    def test_ok(self):
        a, b = generate_keypair(), generate_keypair()
        decoded = try_black_to_red(b.private_key, red_to_black(a.private_key, b.public_key, {'x': 1}))
        self.assertTrue(decoded.ok)
        self.assertEqual(decoded.message, {'x': 1})
        self.assertIsNone(decoded.error_kind)

    def test_error_kinds(self):
        a, b, c = generate_keypair(), generate_keypair(), generate_keypair()
        black = red_to_black(a.private_key, b.public_key, {'x': 1})

        decoded = try_black_to_red(c.private_key, black)
        self.assertFalse(decoded.ok)
        self.assertIsNone(decoded.message)
        self.assertIs(decoded.error_kind, ErrorKind.DECRYPTION)
        self.assertIsInstance(decoded.error, DecryptionFailure)

        decoded = try_black_to_red(b.private_key, black.model_copy(update={'spkhex': c.public_key}))
        self.assertIs(decoded.error_kind, ErrorKind.SIGNATURE_VERIFICATION)

        self.assertIs(try_black_to_red(b.private_key, {}).error_kind, ErrorKind.MALFORMED_ENVELOPE)


if __name__ == '__main__':
    unittest.main()
