"""
Inventory collector for discovering analyzable resources with boto3.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import ClientError

from ..analyzers.models import ResourceDescriptor, ResourceKind
from ..core.exceptions import CollectionError


logger = logging.getLogger(__name__)

DEFAULT_MAX_OBJECTS = 1000
LIST_OBJECTS_PAGE_SIZE = 1000


def _tags(tag_list: Optional[Iterable[Dict[str, str]]]) -> Dict[str, str]:
    return {tag['Key']: tag['Value'] for tag in tag_list or []}


class InventoryCollector:
    """Discovers the resources of one region, one kind at a time."""

    def __init__(self, session: boto3.Session, region: str, max_objects_sampled: int = DEFAULT_MAX_OBJECTS):
        """Initialize the collector with AWS session and region.

        Args:
            session: Authenticated boto3 session
            region: AWS region to discover resources in
            max_objects_sampled: Objects listed per bucket
        """
        self.session = session
        self.region = region
        self.max_objects_sampled = max_objects_sampled
        self.errors: Dict[ResourceKind, str] = {}
        self._clients: Dict[str, Any] = {}

    def client(self, service_name: str):
        """Lazy-loaded AWS service client."""
        if service_name not in self._clients:
            self._clients[service_name] = self.session.client(service_name, region_name=self.region)
        return self._clients[service_name]

    @property
    def discoverers(self) -> Dict[ResourceKind, Callable[[], List[ResourceDescriptor]]]:
        return {
            ResourceKind.COMPUTE: self.discover_instances,
            ResourceKind.VOLUME: self.discover_volumes,
            ResourceKind.BUCKET: self.discover_buckets,
            ResourceKind.LOAD_BALANCER: self.discover_load_balancers,
            ResourceKind.ELASTIC_IP: self.discover_addresses,
            ResourceKind.DATABASE: self.discover_databases,
            ResourceKind.CACHE_NODE: self.discover_cache_clusters,
            ResourceKind.NAT_GATEWAY: self.discover_nat_gateways,
        }

    def collect(self, kinds: Optional[Iterable[ResourceKind]] = None) -> List[ResourceDescriptor]:
        """Discover resources of the requested kinds.

        A kind whose discovery fails is logged, recorded in ``errors`` and
        skipped; the other kinds are still collected.

        Args:
            kinds: Kinds to discover (default: all)

        Returns:
            Descriptors grouped by kind, in discovery order
        """
        wanted = list(kinds) if kinds else list(ResourceKind)
        inventory: List[ResourceDescriptor] = []
        self.errors = {}

        for kind in wanted:
            try:
                found = self.discoverers[kind]()
            except CollectionError as e:
                self.errors[kind] = e.message
                logger.warning(f"Skipping {kind.value} discovery: {e.message}")
                continue
            logger.info(f"Discovered {len(found)} {kind.value} resources in {self.region}")
            inventory.extend(found)

        return inventory

    def _handle_aws_error(self, error: Exception, kind: ResourceKind, resource_id: str = None) -> None:
        """Wrap an AWS API error in a CollectionError with context.

        Raises:
            CollectionError: Always
        """
        resource_context = f" for resource {resource_id}" if resource_id else ""
        raise CollectionError(
            f"AWS {kind.value} discovery failed{resource_context}: {error}",
            resource_id=resource_id,
            details=str(error)
        ) from error

    def discover_instances(self) -> List[ResourceDescriptor]:
        """Discover running EC2 instances."""
        try:
            resources = []
            paginator = self.client('ec2').get_paginator('describe_instances')
            for page in paginator.paginate(Filters=[{'Name': 'instance-state-name', 'Values': ['running']}]):
                for reservation in page['Reservations']:
                    for instance in reservation['Instances']:
                        resources.append(ResourceDescriptor(
                            resource_id=instance['InstanceId'],
                            kind=ResourceKind.COMPUTE,
                            shape=instance['InstanceType'],
                            region=self.region,
                            created_at=instance.get('LaunchTime'),
                            tags=_tags(instance.get('Tags')),
                            attributes={
                                'state': instance['State']['Name'],
                                'availability_zone': instance.get('Placement', {}).get('AvailabilityZone'),
                                'architecture': instance.get('Architecture'),
                                'platform': instance.get('Platform', 'linux'),
                                'vpc_id': instance.get('VpcId'),
                                'subnet_id': instance.get('SubnetId'),
                            }
                        ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.COMPUTE)

    def discover_volumes(self) -> List[ResourceDescriptor]:
        """Discover EBS volumes with their attachment state."""
        try:
            resources = []
            paginator = self.client('ec2').get_paginator('describe_volumes')
            for page in paginator.paginate():
                for volume in page['Volumes']:
                    resources.append(ResourceDescriptor(
                        resource_id=volume['VolumeId'],
                        kind=ResourceKind.VOLUME,
                        shape=volume.get('VolumeType'),
                        region=self.region,
                        created_at=volume.get('CreateTime'),
                        tags=_tags(volume.get('Tags')),
                        attributes={
                            'state': volume['State'],
                            'size_gib': volume['Size'],
                            'volume_type': volume.get('VolumeType'),
                            'attachments': [a['InstanceId'] for a in volume.get('Attachments', [])],
                            'availability_zone': volume.get('AvailabilityZone'),
                        }
                    ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.VOLUME)

    def discover_addresses(self) -> List[ResourceDescriptor]:
        """Discover Elastic IP allocations."""
        try:
            resources = []
            for address in self.client('ec2').describe_addresses()['Addresses']:
                resources.append(ResourceDescriptor(
                    resource_id=address.get('AllocationId') or address['PublicIp'],
                    kind=ResourceKind.ELASTIC_IP,
                    region=self.region,
                    tags=_tags(address.get('Tags')),
                    attributes={
                        'public_ip': address.get('PublicIp'),
                        'instance_id': address.get('InstanceId'),
                        'network_interface_id': address.get('NetworkInterfaceId'),
                        'association_id': address.get('AssociationId'),
                        'domain': address.get('Domain'),
                    }
                ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.ELASTIC_IP)

    def discover_load_balancers(self) -> List[ResourceDescriptor]:
        """Discover application, network and classic load balancers with target health."""
        try:
            resources = []
            elbv2 = self.client('elbv2')
            for page in elbv2.get_paginator('describe_load_balancers').paginate():
                for lb in page['LoadBalancers']:
                    if lb['Type'] not in ('application', 'network'):
                        continue
                    arn = lb['LoadBalancerArn']
                    target_groups = []
                    for group in elbv2.describe_target_groups(LoadBalancerArn=arn)['TargetGroups']:
                        health = elbv2.describe_target_health(TargetGroupArn=group['TargetGroupArn'])
                        states = [t['TargetHealth']['State'] for t in health['TargetHealthDescriptions']]
                        target_groups.append({
                            'name': group['TargetGroupName'],
                            'total': len(states),
                            'healthy': states.count('healthy'),
                        })
                    resources.append(ResourceDescriptor(
                        resource_id=lb['LoadBalancerName'],
                        kind=ResourceKind.LOAD_BALANCER,
                        region=self.region,
                        created_at=lb.get('CreatedTime'),
                        attributes={
                            'lb_type': lb['Type'],
                            'arn': arn,
                            # CloudWatch identifies v2 load balancers by the ARN suffix
                            'dimension_value': arn.split(':loadbalancer/', 1)[-1],
                            'vpc_id': lb.get('VpcId'),
                            'target_groups': target_groups,
                        }
                    ))

            elb = self.client('elb')
            for page in elb.get_paginator('describe_load_balancers').paginate():
                for lb in page['LoadBalancerDescriptions']:
                    name = lb['LoadBalancerName']
                    instances = lb.get('Instances', [])
                    healthy = 0
                    if instances:
                        health = elb.describe_instance_health(LoadBalancerName=name)
                        healthy = sum(1 for s in health['InstanceStates'] if s['State'] == 'InService')
                    resources.append(ResourceDescriptor(
                        resource_id=name,
                        kind=ResourceKind.LOAD_BALANCER,
                        region=self.region,
                        created_at=lb.get('CreatedTime'),
                        attributes={
                            'lb_type': 'classic',
                            'dimension_value': name,
                            'vpc_id': lb.get('VPCId'),
                            'target_groups': [{'name': name, 'total': len(instances), 'healthy': healthy}],
                        }
                    ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.LOAD_BALANCER)

    def discover_databases(self) -> List[ResourceDescriptor]:
        """Discover RDS instances."""
        try:
            resources = []
            for page in self.client('rds').get_paginator('describe_db_instances').paginate():
                for instance in page['DBInstances']:
                    # Skip instances that are being deleted
                    if instance['DBInstanceStatus'] == 'deleting':
                        continue
                    resources.append(ResourceDescriptor(
                        resource_id=instance['DBInstanceIdentifier'],
                        kind=ResourceKind.DATABASE,
                        shape=instance['DBInstanceClass'],
                        region=self.region,
                        created_at=instance.get('InstanceCreateTime'),
                        tags=_tags(instance.get('TagList')),
                        attributes={
                            'engine': instance['Engine'],
                            'status': instance['DBInstanceStatus'],
                            'multi_az': instance.get('MultiAZ', False),
                            'allocated_storage': instance.get('AllocatedStorage'),
                            'storage_type': instance.get('StorageType'),
                        }
                    ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.DATABASE)

    def discover_cache_clusters(self) -> List[ResourceDescriptor]:
        """Discover ElastiCache clusters; multi-AZ comes from their replication group."""
        try:
            elasticache = self.client('elasticache')
            multi_az_groups = set()
            for page in elasticache.get_paginator('describe_replication_groups').paginate():
                for group in page['ReplicationGroups']:
                    if group.get('MultiAZ') == 'enabled':
                        multi_az_groups.add(group['ReplicationGroupId'])

            resources = []
            for page in elasticache.get_paginator('describe_cache_clusters').paginate():
                for cluster in page['CacheClusters']:
                    if cluster.get('CacheClusterStatus') == 'deleting':
                        continue
                    resources.append(ResourceDescriptor(
                        resource_id=cluster['CacheClusterId'],
                        kind=ResourceKind.CACHE_NODE,
                        shape=cluster['CacheNodeType'],
                        region=self.region,
                        created_at=cluster.get('CacheClusterCreateTime'),
                        attributes={
                            'engine': cluster['Engine'],
                            'num_nodes': cluster.get('NumCacheNodes', 1),
                            'replication_group_id': cluster.get('ReplicationGroupId'),
                            'multi_az': cluster.get('ReplicationGroupId') in multi_az_groups,
                        }
                    ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.CACHE_NODE)

    def discover_nat_gateways(self) -> List[ResourceDescriptor]:
        """Discover available NAT gateways and the endpoint services of their VPCs."""
        try:
            ec2 = self.client('ec2')
            endpoints_by_vpc: Dict[str, List[str]] = {}
            resources = []
            paginator = ec2.get_paginator('describe_nat_gateways')
            for page in paginator.paginate(Filters=[{'Name': 'state', 'Values': ['available']}]):
                for gateway in page['NatGateways']:
                    vpc_id = gateway.get('VpcId')
                    if vpc_id and vpc_id not in endpoints_by_vpc:
                        response = ec2.describe_vpc_endpoints(Filters=[{'Name': 'vpc-id', 'Values': [vpc_id]}])
                        endpoints_by_vpc[vpc_id] = [e['ServiceName'] for e in response['VpcEndpoints']]
                    resources.append(ResourceDescriptor(
                        resource_id=gateway['NatGatewayId'],
                        kind=ResourceKind.NAT_GATEWAY,
                        region=self.region,
                        created_at=gateway.get('CreateTime'),
                        tags=_tags(gateway.get('Tags')),
                        attributes={
                            'state': gateway['State'],
                            'vpc_id': vpc_id,
                            'subnet_id': gateway.get('SubnetId'),
                            'vpc_endpoint_services': endpoints_by_vpc.get(vpc_id, []),
                        }
                    ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.NAT_GATEWAY)

    def discover_buckets(self) -> List[ResourceDescriptor]:
        """Discover buckets located in this region with a sample of their objects."""
        try:
            s3 = self.client('s3')
            resources = []
            for bucket in s3.list_buckets()['Buckets']:
                name = bucket['Name']
                location = s3.get_bucket_location(Bucket=name).get('LocationConstraint') or 'us-east-1'
                if location != self.region:
                    continue
                resources.append(ResourceDescriptor(
                    resource_id=name,
                    kind=ResourceKind.BUCKET,
                    region=self.region,
                    created_at=bucket.get('CreationDate'),
                    attributes={
                        'has_lifecycle_policy': self._has_lifecycle_policy(name),
                        'objects': self._sample_objects(name),
                    }
                ))
            return resources
        except Exception as e:
            self._handle_aws_error(e, ResourceKind.BUCKET)

    def _has_lifecycle_policy(self, bucket: str) -> bool:
        try:
            self.client('s3').get_bucket_lifecycle_configuration(Bucket=bucket)
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'NoSuchLifecycleConfiguration':
                return False
            raise

    def _sample_objects(self, bucket: str) -> List[Dict[str, Any]]:
        """First ``max_objects_sampled`` non-empty objects; folder markers do not count."""
        sample: List[Dict[str, Any]] = []
        paginator = self.client('s3').get_paginator('list_objects_v2')
        pages = paginator.paginate(Bucket=bucket, PaginationConfig={'PageSize': LIST_OBJECTS_PAGE_SIZE})
        for page in pages:
            for obj in page.get('Contents', []):
                if not obj['Size']:
                    continue
                sample.append({
                    'size': obj['Size'],
                    'storage_class': obj.get('StorageClass', 'STANDARD'),
                    'last_modified': obj['LastModified'],
                })
                if len(sample) >= self.max_objects_sampled:
                    return sample
        return sample
