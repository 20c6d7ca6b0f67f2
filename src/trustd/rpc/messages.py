"""
安全 API 的线上消息，与 Talos 的 `securityapi` 包兼容：

    message CertificateRequest  { bytes csr = 1; }
    message CertificateResponse { bytes ca = 1; bytes crt = 2; }
    service SecurityService { rpc Certificate(CertificateRequest) returns (CertificateResponse); }

描述符在导入时构建，无需生成代码。
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "securityapi"
SERVICE_NAME = f"{PACKAGE}.SecurityService"
CERTIFICATE_METHOD = f"/{SERVICE_NAME}/Certificate"

_Field = descriptor_pb2.FieldDescriptorProto


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="security/security.proto",
        package=PACKAGE,
        syntax="proto3",
    )

    request = proto.message_type.add(name="CertificateRequest")
    request.field.add(name="csr", json_name="csr", number=1, type=_Field.TYPE_BYTES, label=_Field.LABEL_OPTIONAL)

    response = proto.message_type.add(name="CertificateResponse")
    response.field.add(name="ca", json_name="ca", number=1, type=_Field.TYPE_BYTES, label=_Field.LABEL_OPTIONAL)
    response.field.add(name="crt", json_name="crt", number=2, type=_Field.TYPE_BYTES, label=_Field.LABEL_OPTIONAL)

    service = proto.service.add(name="SecurityService")
    service.method.add(
        name="Certificate",
        input_type=f".{PACKAGE}.CertificateRequest",
        output_type=f".{PACKAGE}.CertificateResponse",
    )
    return proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_file_descriptor().SerializeToString())

CertificateRequest = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PACKAGE}.CertificateRequest")
)
CertificateResponse = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PACKAGE}.CertificateResponse")
)
