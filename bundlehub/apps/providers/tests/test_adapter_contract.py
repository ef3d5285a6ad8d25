import unittest
from decimal import Decimal
from unittest.mock import patch

import requests

from apps.providers.adapters.base import (
    DispatchOutcome,
    MappingError,
    Unavailable,
    looks_like_html,
    normalize_phone,
    parse_size,
)
from apps.providers.adapters.codecraft import CodeCraftAdapter, CodeCraftConfig
from apps.providers.adapters.easydata import EasyDataAdapter, EasyDataConfig
from apps.providers.adapters.jaybart import JaybartAdapter, JaybartConfig
from apps.providers.adapters.jesco import JescoAdapter, JescoConfig

from .helpers import make_item, make_order, make_response

POST = 'apps.providers.adapters.base.requests.post'
GET = 'apps.providers.adapters.base.requests.get'


class NormalizePhoneTests(unittest.TestCase):
    def test_nine_digits_gain_leading_zero(self):
        self.assertEqual(normalize_phone('241234567'), '0241234567')

    def test_ten_digits_pass_through(self):
        self.assertEqual(normalize_phone('0241234567'), '0241234567')

    def test_non_digits_are_stripped(self):
        self.assertEqual(normalize_phone('+233 24-123-4567'), '233241234567')
        self.assertEqual(normalize_phone(' 24 123 4567 '), '0241234567')

    def test_idempotent(self):
        for raw in ('241234567', '0241234567', '+233241234567', '(024) 123 4567', '12345'):
            once = normalize_phone(raw)
            self.assertEqual(normalize_phone(once), once)

    def test_empty_is_mapping_error(self):
        for raw in ('', None, '  ', 'n/a'):
            with self.assertRaises(MappingError):
                normalize_phone(raw)


class ParseSizeTests(unittest.TestCase):
    def test_reads_first_number(self):
        self.assertEqual(parse_size('5GB'), Decimal('5'))
        self.assertEqual(parse_size('1.5 GB'), Decimal('1.5'))
        self.assertEqual(parse_size('Bundle 10'), Decimal('10'))

    def test_missing_or_zero_size_is_mapping_error(self):
        for raw in ('', None, 'GB', '0GB'):
            with self.assertRaises(MappingError):
                parse_size(raw)


class HtmlSniffingTests(unittest.TestCase):
    def test_detects_php_error_pages(self):
        self.assertTrue(looks_like_html('<br />\n<b>Fatal error</b>: Uncaught Error'))
        self.assertTrue(looks_like_html('PHP Fatal error: Allowed memory size exhausted'))
        self.assertTrue(looks_like_html('  <!DOCTYPE html><html></html>'))

    def test_json_is_not_html(self):
        self.assertFalse(looks_like_html('{"order_status": "Completed"}'))


class StatusMapperTests(unittest.TestCase):
    """Mappers are total: every input gives a canonical status or None."""

    def setUp(self):
        self.adapters = [
            JaybartAdapter(JaybartConfig(api_key='k')),
            CodeCraftAdapter(CodeCraftConfig(api_key='k', client_email='e@x.test')),
            JescoAdapter(JescoConfig(api_key='k')),
            EasyDataAdapter(EasyDataConfig(base_url='https://e.test', username='u', password='p')),
        ]

    def test_total_over_arbitrary_input(self):
        samples = ['', None, '   ', 'COMPLETED', ' Processing ', 'weird', '???', 123, 'crediting successful', 'success']
        for adapter in self.adapters:
            for raw in samples:
                self.assertIn(adapter.map_status(raw), (None, 'processing', 'completed', 'cancelled'))

    def test_case_and_whitespace_insensitive(self):
        jaybart = self.adapters[0]
        self.assertEqual(jaybart.map_status('  Delivered '), 'completed')
        self.assertEqual(jaybart.map_status('PENDING'), 'processing')
        self.assertEqual(jaybart.map_status('Failed'), 'cancelled')

    def test_provider_vocabularies(self):
        jaybart, codecraft, jesco, easydata = self.adapters
        self.assertEqual(codecraft.map_status('Crediting Successful'), 'completed')
        self.assertEqual(codecraft.map_status('placed'), 'processing')
        self.assertEqual(jesco.map_status('pending'), 'processing')
        self.assertEqual(easydata.map_status('success'), 'completed')
        self.assertIsNone(jaybart.map_status('refunded'))
        self.assertIsNone(jesco.map_status('delivered'))


class JaybartAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = JaybartAdapter(JaybartConfig(base_url='https://jb.test/api/v1', api_key='secret'))

    def test_push_builds_shared_bundle_request(self):
        order = make_order(items=[make_item(size='5GB', quantity=2, beneficiary='241234567')])
        with patch(POST, return_value=make_response(200, {'success': True, 'transaction_code': 'TX-77'})) as post:
            outcome = self.adapter.push(order)

        self.assertEqual(outcome, DispatchOutcome.succeeded('TX-77'))
        url = post.call_args.args[0]
        kwargs = post.call_args.kwargs
        self.assertEqual(url, 'https://jb.test/api/v1/buy-other-package')
        self.assertEqual(kwargs['json'], {'recipient_msisdn': '0241234567', 'network_id': 3, 'shared_bundle': 10000})
        self.assertEqual(kwargs['headers']['x-api-key'], 'secret')
        self.assertIsNotNone(kwargs['timeout'])

    def test_phone_format_is_owned_by_the_adapter(self):
        class InternationalJaybart(JaybartAdapter):
            def format_phone(self, raw):
                return '233' + super().format_phone(raw)[1:]

        adapter = InternationalJaybart(self.adapter.config)
        order = make_order(items=[make_item(beneficiary='241234567')])
        with patch(POST, return_value=make_response(200, {'success': True, 'transaction_code': 'TX-1'})) as post:
            adapter.push(order)
        self.assertEqual(post.call_args.kwargs['json']['recipient_msisdn'], '233241234567')
        self.assertEqual(self.adapter.format_phone('24 123 4567'), '0241234567')

    def test_success_flag_without_code_fails(self):
        with patch(POST, return_value=make_response(200, {'success': True})):
            outcome = self.adapter.push(make_order())
        self.assertEqual(outcome.kind, 'failed')

    def test_timeout_is_item_failure(self):
        with patch(POST, side_effect=requests.Timeout('read timed out')):
            outcome = self.adapter.push(make_order())
        self.assertEqual(outcome.kind, 'failed')
        self.assertIn('Timeout', outcome.reason)

    def test_status_reads_first_order_item(self):
        order = make_order(reference='TX-77')
        payload = {'order_items': [{'status': 'Delivered'}]}
        with patch(POST, return_value=make_response(200, payload)) as post:
            result = self.adapter.check_status(order)
        self.assertEqual(result, 'Delivered')
        self.assertEqual(post.call_args.kwargs['json'], {'transaction_id': 'TX-77'})

    def test_status_without_items_is_unavailable(self):
        with patch(POST, return_value=make_response(200, {'order_items': []})):
            result = self.adapter.check_status(make_order(reference='TX-77'))
        self.assertIsInstance(result, Unavailable)


class PushAggregationTests(unittest.TestCase):
    def setUp(self):
        self.adapter = JaybartAdapter(JaybartConfig(base_url='https://jb.test/api/v1', api_key='secret'))

    def test_all_items_missing_beneficiary_is_disabled_without_http(self):
        order = make_order(items=[make_item(1, beneficiary=''), make_item(2, beneficiary='  ')])
        with patch(POST) as post:
            outcome = self.adapter.push(order)
        self.assertEqual(outcome.kind, 'disabled')
        post.assert_not_called()

    def test_unmappable_item_is_skipped(self):
        order = make_order(items=[make_item(1, beneficiary=''), make_item(2)])
        with patch(POST, return_value=make_response(200, {'success': True, 'transaction_code': 'TX-2'})) as post:
            outcome = self.adapter.push(order)
        self.assertEqual(post.call_count, 1)
        self.assertEqual(outcome.reference, 'TX-2')

    def test_partial_failure_is_success_with_note(self):
        order = make_order(items=[make_item(1), make_item(2)])
        responses = [
            make_response(200, {'success': False, 'message': 'insufficient balance'}),
            make_response(200, {'success': True, 'transaction_code': 'TX-2'}),
        ]
        with patch(POST, side_effect=responses):
            outcome = self.adapter.push(order)
        self.assertTrue(outcome.is_success)
        self.assertEqual(outcome.reference, 'TX-2')
        self.assertIn('insufficient balance', outcome.note)

    def test_all_items_failing_is_failed(self):
        order = make_order(items=[make_item(1), make_item(2)])
        with patch(POST, return_value=make_response(500, text='Internal Server Error')):
            outcome = self.adapter.push(order)
        self.assertEqual(outcome.kind, 'failed')
        self.assertIn('HTTP 500', outcome.reason)

    def test_missing_api_key_disables_without_http(self):
        adapter = JaybartAdapter(JaybartConfig(api_key=None))
        with patch(POST) as post:
            outcome = adapter.push(make_order())
        self.assertEqual(outcome.kind, 'disabled')
        post.assert_not_called()


class CodeCraftAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = CodeCraftAdapter(CodeCraftConfig(
            base_url='https://cc.test/api', api_key='agent-key', client_email='ops@x.test',
        ))

    def test_telecel_push_uses_initiate_endpoint(self):
        order = make_order(network='TELECEL', items=[make_item(size='10GB', product='Telecel Data')])
        with patch(POST, return_value=make_response(200, {'status': 'success'})) as post:
            outcome = self.adapter.push(order)

        self.assertTrue(outcome.is_success)
        self.assertEqual(post.call_args.args[0], 'https://cc.test/api/initiate.php')
        body = post.call_args.kwargs['json']
        self.assertEqual(body['network'], 'TELECEL')
        self.assertEqual(body['gig'], '10')
        self.assertEqual(body['agent_api'], 'agent-key')
        self.assertEqual(body['customer_tel'], '0209998888')
        self.assertEqual(body['reference_id'], outcome.reference)
        self.assertNotIn('_endpoint', body)
        self.assertRegex(outcome.reference, r'^[A-Z0-9]{5}-[A-Z0-9]{5}-[A-Z0-9]{6}-[A-Z0-9]{5}-\d{5}$')

    def test_bigtime_push_uses_special_endpoint(self):
        order = make_order(network='BIGTIME', items=[make_item(size='30GB', product='AT BigTime')])
        with patch(POST, return_value=make_response(200, {'status': True})) as post:
            self.adapter.push(order)
        self.assertEqual(post.call_args.args[0], 'https://cc.test/api/special.php')
        body = post.call_args.kwargs['json']
        self.assertEqual(body['network'], 'AT')
        self.assertNotIn('customer_name', body)

    def test_ishare_maps_to_at(self):
        order = make_order(network='ISHARE', items=[make_item(size='2GB')])
        with patch(POST, return_value=make_response(200, {'status': 'success'})) as post:
            self.adapter.push(order)
        self.assertEqual(post.call_args.kwargs['json']['network'], 'AT')

    def test_missing_success_field_is_failure(self):
        with patch(POST, return_value=make_response(200, {'message': 'queued'})):
            outcome = self.adapter.push(make_order(network='TELECEL'))
        self.assertEqual(outcome.kind, 'failed')

    def test_references_are_unique_per_attempt(self):
        order = make_order(network='TELECEL')
        with patch(POST, return_value=make_response(200, {'status': 'success'})):
            first = self.adapter.push(order)
            second = self.adapter.push(order)
        self.assertNotEqual(first.reference, second.reference)

    def test_php_fatal_error_page_is_unavailable(self):
        html = '<br />\n<b>Fatal error</b>:  Uncaught mysqli_sql_exception in response_agent.php'
        with patch(GET, return_value=make_response(200, text=html)):
            result = self.adapter.check_status(make_order(network='TELECEL', reference='ABCDE-12345'))
        self.assertIsInstance(result, Unavailable)

    def test_status_query(self):
        with patch(GET, return_value=make_response(200, {'order_status': 'Crediting Successful'})) as get:
            result = self.adapter.check_status(make_order(network='TELECEL', reference='ABCDE-12345'))
        self.assertEqual(result, 'Crediting Successful')
        self.assertEqual(get.call_args.kwargs['params'], {'client_email': 'ops@x.test', 'reference_id': 'ABCDE-12345'})


class JescoAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = JescoAdapter(JescoConfig(base_url='https://js.test/api/v1', api_key='tok'))

    def test_push_uses_sku_and_bearer_token(self):
        order = make_order(order_id=5, items=[make_item(9, size='5 GB')])
        payload = {'success': True, 'data': {'id': 4411, 'status': 'pending'}}
        with patch(POST, return_value=make_response(201, payload)) as post:
            outcome = self.adapter.push(order)

        self.assertEqual(outcome.reference, '4411')
        body = post.call_args.kwargs['json']
        self.assertEqual(body['package'], 'MTN11-5GB')
        self.assertEqual(body['reference'], 'ORDER_5_9')
        self.assertEqual(body['meta'], {'order_id': 5, 'item_id': 9, 'customer_id': 'u-7'})
        self.assertEqual(post.call_args.kwargs['headers']['Authorization'], 'Bearer tok')

    def test_unknown_size_is_skipped(self):
        with patch(POST) as post:
            outcome = self.adapter.push(make_order(items=[make_item(size='12GB')]))
        self.assertEqual(outcome.kind, 'disabled')
        post.assert_not_called()

    def test_success_without_id_has_no_reference(self):
        with patch(POST, return_value=make_response(200, {'success': True, 'data': {'status': 'pending'}})):
            outcome = self.adapter.push(make_order())
        self.assertTrue(outcome.is_success)
        self.assertIsNone(outcome.reference)

    def test_non_numeric_reference_is_unavailable_without_http(self):
        with patch(GET) as get:
            result = self.adapter.check_status(make_order(reference='ORDER_5_9'))
        self.assertIsInstance(result, Unavailable)
        get.assert_not_called()

    def test_status_query(self):
        payload = {'success': True, 'data': {'id': 4411, 'status': 'completed'}}
        with patch(GET, return_value=make_response(200, payload)) as get:
            result = self.adapter.check_status(make_order(reference='4411'))
        self.assertEqual(result, 'completed')
        self.assertEqual(get.call_args.args[0], 'https://js.test/api/v1/purchases/4411')


class EasyDataAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = EasyDataAdapter(EasyDataConfig(base_url='https://ed.test/api', username='user', password='pass'))

    def test_push_uses_basic_auth(self):
        order = make_order(order_id=8, items=[make_item(3, size='2GB', quantity=3)])
        with patch(POST, return_value=make_response(200, {'status': True, 'order_reference': 'ED-1'})) as post:
            outcome = self.adapter.push(order)

        self.assertEqual(outcome.reference, 'ED-1')
        self.assertEqual(post.call_args.kwargs['headers']['Authorization'], 'Basic dXNlcjpwYXNz')
        self.assertEqual(post.call_args.kwargs['json'], {
            'network': 'mtn', 'recipient': '0241234567', 'package_size': 6, 'order_id': 'ORDER_8_3',
        })

    def test_reference_falls_back_to_composite_key(self):
        with patch(POST, return_value=make_response(200, {'status': 'success'})):
            outcome = self.adapter.push(make_order(order_id=8, items=[make_item(3)]))
        self.assertEqual(outcome.reference, 'ORDER_8_3')

    def test_status_uses_first_item_composite_key(self):
        order = make_order(order_id=8, items=[make_item(3), make_item(4)], reference='ED-1')
        with patch(GET, return_value=make_response(200, {'status': 'success', 'order_status': 'completed'})) as get:
            result = self.adapter.check_status(order)
        self.assertEqual(result, 'completed')
        self.assertEqual(get.call_args.kwargs['params'], {'order_reference': 'ORDER_8_3'})

    def test_failed_lookup_is_unavailable(self):
        with patch(GET, return_value=make_response(200, {'status': 'error', 'message': 'not found'})):
            result = self.adapter.check_status(make_order(reference='ED-1'))
        self.assertIsInstance(result, Unavailable)

    def test_malformed_json_is_unavailable(self):
        with patch(GET, return_value=make_response(200, text='{"status": ')):
            result = self.adapter.check_status(make_order(reference='ED-1'))
        self.assertIsInstance(result, Unavailable)
