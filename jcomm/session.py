import json, hmac, uuid, datetime, hashlib


DELIM = b'<IDS|MSG>'
KERNEL_PROTOCOL_VERSION = '5.0'


def create_message(msg_type, channel, username, session, content=None, metadata=None, parent=None,
                   buffers=None):
    '''
    Build a message of the given type for the given channel

    :param msg_type: the message type (see the Jupyter messaging docs for explanation of these)
    :param channel: the name of the channel the message belongs to; 'shell', 'iopub', 'stdin' or 'control'
    :param username: username to stamp into the header
    :param session: session (client) identifier to stamp into the header
    :param content: message content
    :param metadata: metadata
    :param parent: message parent header
    :param buffers: binary data buffers to attach to the message
    :return: the message structure
    '''
    header = {
        'msg_id': str(uuid.uuid4()),
        'msg_type': msg_type,
        'username': username,
        'session': session,
        'date': datetime.datetime.now().isoformat(),
        'version': KERNEL_PROTOCOL_VERSION
    }
    return {
        'header': header,
        'msg_id': header['msg_id'],
        'msg_type': msg_type,
        'channel': channel,
        'parent_header': {} if parent is None   else parent,
        'content': {} if content is None   else content,
        'metadata': {} if metadata is None   else metadata,
        'buffers': [] if buffers is None   else list(buffers),
    }



class Session (object):
    def __init__(self, key, username='', signature_scheme='hmac-sha256'):
        '''
        Kernel session constructor

        :param key: message authentication key from connection file; an empty key disables signing
        :param username: Username of user (or empty string)
        :param signature_scheme: signature scheme from connection file; only hmac-sha256 is supported
        :return:
        '''
        if signature_scheme != 'hmac-sha256':
            raise ValueError('Unsupported signature scheme {0}'.format(signature_scheme))

        if isinstance(key, str):
            key = key.encode('utf8')

        if key:
            self.auth = hmac.HMAC(key, digestmod=hashlib.sha256)
        else:
            self.auth = None

        self.session = str(uuid.uuid4())
        self.username = username


    def send(self, stream, msg, ident=None):
        '''
        Serialize a message and send it on a ZeroMQ socket

        :param stream: the ZeroMQ socket over which the message is to be sent
        :param msg: the message, as built by msg() or create_message()
        :param ident: IDENT
        :return: the message
        '''
        to_send = self.serialize(msg, ident)
        to_send.extend(msg.get('buffers') or [])
        stream.send_multipart(to_send)
        return msg

    def recv(self, stream):
        '''
        Receive a message from a socket
        :param stream: the ZeroMQ socket from which to read the message
        :return: a tuple: (idents, msg) where msg is the deserialized message
        '''
        msg_list = stream.recv_multipart()

        # Extract identities
        try:
            pos = msg_list.index(DELIM)
        except ValueError:
            raise ValueError('Message has no delimiter')
        idents, msg_list = msg_list[:pos], msg_list[pos+1:]
        return idents, self.deserialize(msg_list)


    def serialize(self, msg, ident=None):
        '''
        Serialize a message into a list of byte arrays

        :param msg: the message to serialize
        :param ident: the ident
        :return: the serialize message in the form of a list of byte arrays
        '''
        payload = [self.pack(msg['header']),
                   self.pack(msg['parent_header']),
                   self.pack(msg['metadata']),
                   self.pack(msg.get('content') or {})]

        serialized = []

        if isinstance(ident, list):
            serialized.extend(ident)
        elif ident is not None:
            serialized.append(ident)
        serialized.append(DELIM)

        signature = self.sign(payload)
        serialized.append(signature)
        serialized.extend(payload)

        return serialized


    def deserialize(self, msg_list):
        '''
        Deserialize a message, converting it from a list of byte arrays to a message structure (a dict)
        :param msg_list: serialized message in the form of a list of byte arrays (without idents or delimiter)
        :return: message structure
        '''
        min_len = 5
        if len(msg_list) < min_len:
            raise ValueError('Message too short')
        if self.auth is not None:
            signature = msg_list[0]
            check = self.sign(msg_list[1:5])
            if not hmac.compare_digest(signature, check):
                raise ValueError('Invalid signature')
        header = self.unpack(msg_list[1])
        return {
            'header': header,
            'msg_id': header['msg_id'],
            'msg_type': header['msg_type'],
            'parent_header': self.unpack(msg_list[2]),
            'metadata': self.unpack(msg_list[3]),
            'content': self.unpack(msg_list[4]),
            'buffers': list(msg_list[5:])
        }


    def msg(self, msg_type, content=None, parent=None, metadata=None, channel='shell', buffers=None):
        '''
        Build a message of the given type, stamped with this session's username and id
        :param msg_type: the message type
        :param content: message content
        :param parent: message parent header
        :param metadata: metadata
        :param channel: channel name
        :param buffers: binary buffers
        :return: the message structure
        '''
        return create_message(msg_type, channel, self.username, self.session, content=content,
                              metadata=metadata, parent=parent, buffers=buffers)


    def sign(self, msg_payload_list):
        '''
        Sign a message payload

        :param msg_payload_list: the message payload (header, parent header, metadata, content)
        :return: signature hash hex digest
        '''
        if self.auth is None:
            return b''
        else:
            h = self.auth.copy()
            for m in msg_payload_list:
                h.update(m)
            return h.hexdigest().encode('ascii')



    def pack(self, x):
        '''
        Pack message data into a byte array

        :param x: message data to pack
        :return: byte array
        '''
        return json.dumps(x).encode('utf8')

    def unpack(self, x):
        '''
        Unpack byte array into message data

        :param x: byte array to unpack
        :return: message component
        '''
        return json.loads(x.decode('utf8'))
