"""
Testes para AwsMetadataClient e merge de metadata no InstanceRecord.
"""

import json

import httpx
import pytest

from eureka_client.exceptions import MetadataFetchError
from eureka_client.metadata import AwsMetadataClient
from eureka_client.models import InstanceMetadata

from tests.conftest import make_config


EC2_VALUES = {
    '/latest/meta-data/ami-id': 'ami-123',
    '/latest/meta-data/instance-id': 'i-abc',
    '/latest/meta-data/instance-type': 'm5.large',
    '/latest/meta-data/local-ipv4': '10.0.0.9',
    '/latest/meta-data/local-hostname': 'ip-10-0-0-9.ec2.internal',
    '/latest/meta-data/placement/availability-zone': 'us-east-1a',
    '/latest/meta-data/public-hostname': 'ec2-54-1-2-3.compute-1.amazonaws.com',
    '/latest/meta-data/public-ipv4': '54.1.2.3',
    '/latest/meta-data/mac': '0e:aa:bb:cc:dd:ee',
    '/latest/meta-data/network/interfaces/macs/0e:aa:bb:cc:dd:ee/vpc-id': 'vpc-42',
    '/latest/dynamic/instance-identity/document': json.dumps({'accountId': '123456789012'}),
}


def metadata_client(values):
    def handler(request):
        value = values.get(request.url.path)
        if value is None:
            return httpx.Response(404)
        return httpx.Response(200, text=value)

    return AwsMetadataClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestAwsMetadataClient:

    @pytest.mark.asyncio
    async def test_fetch_all_keys(self):
        metadata = await metadata_client(EC2_VALUES).fetch_metadata()

        assert metadata.public_hostname == 'ec2-54-1-2-3.compute-1.amazonaws.com'
        assert metadata.public_ipv4 == '54.1.2.3'
        assert metadata.raw['instance-id'] == 'i-abc'
        assert metadata.raw['availability-zone'] == 'us-east-1a'
        assert metadata.raw['vpc-id'] == 'vpc-42'
        assert metadata.raw['accountId'] == '123456789012'

    @pytest.mark.asyncio
    async def test_missing_keys_are_skipped(self):
        values = {k: v for k, v in EC2_VALUES.items() if 'public' not in k and 'mac' not in k}

        metadata = await metadata_client(values).fetch_metadata()

        assert metadata.public_hostname is None
        assert 'vpc-id' not in metadata.raw
        assert metadata.raw['instance-id'] == 'i-abc'

    @pytest.mark.asyncio
    async def test_nothing_readable_raises(self):
        with pytest.raises(MetadataFetchError):
            await metadata_client({}).fetch_metadata()

    @pytest.mark.asyncio
    async def test_transport_errors_are_skipped(self):
        def handler(request):
            if request.url.path.endswith('instance-id'):
                return httpx.Response(200, text='i-abc')
            raise httpx.ConnectTimeout('timeout', request=request)

        client = AwsMetadataClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        metadata = await client.fetch_metadata()

        assert metadata.raw == {'instance-id': 'i-abc'}


class TestApplyMetadata:

    def test_merges_metadata_and_replaces_host_placeholder(self):
        config = make_config(instance={
            'dataCenterInfo': {'name': 'Amazon', 'metadata': {'custom': 'keep', 'instance-id': 'old'}},
            'statusPageUrl': 'http://__HOST__:8080/info',
            'healthCheckUrl': 'http://__HOST__:8080/health',
        })
        instance = config.instance

        instance.apply_metadata(InstanceMetadata(
            public_hostname='ec2-host',
            public_ipv4='54.1.2.3',
            raw={'instance-id': 'i-new', 'public-hostname': 'ec2-host'},
        ))

        assert instance.host_name == 'ec2-host'
        assert instance.ip_addr == '54.1.2.3'
        assert instance.status_page_url == 'http://ec2-host:8080/info'
        assert instance.health_check_url == 'http://ec2-host:8080/health'
        assert instance.data_center_info.metadata == {
            'custom': 'keep',
            'instance-id': 'i-new',
            'public-hostname': 'ec2-host',
        }

    def test_urls_without_placeholder_are_unchanged(self):
        instance = make_config(instance={'statusPageUrl': 'http://fixed/info'}).instance

        instance.apply_metadata(InstanceMetadata(public_hostname='ec2-host', raw={}))

        assert instance.status_page_url == 'http://fixed/info'
        assert instance.health_check_url is None
